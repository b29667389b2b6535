"""
Client-side consumers of the watched config file.

Import the pieces you need directly:

    from cfgwatch.client.watcher import ClientConfigWatcher
    from cfgwatch.client.retry import with_retry_policy
    from cfgwatch.client.circuit_breaker import with_circuit_breaker
    from cfgwatch.client.rpc_timeout import with_rpc_timeout
"""
