from .config_manager import (
    ConfigManager,
    ConfigSchema,
    ConfigurationError,
    RunConfig,
)

__all__ = [
    'ConfigManager',
    'ConfigSchema',
    'ConfigurationError',
    'RunConfig',
]
