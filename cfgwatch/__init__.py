"""
cfgwatch package initializer.

This file is intentionally lightweight: no submodule imports to avoid starting
observers or touching the filesystem on `import cfgwatch`. Import
`cfgwatch.filewatcher`, `cfgwatch.monitor`, `cfgwatch.client` or
`cfgwatch.server` directly when needed.
"""

__version__ = "0.1.0"

# Only expose version at package level; submodules should be imported explicitly
__all__ = ["__version__"]
