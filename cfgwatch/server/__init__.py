"""
Server-side consumers of the watched config file.

    from cfgwatch.server.watcher import ServerConfigWatcher
    from cfgwatch.server.limiter import with_limit
"""
