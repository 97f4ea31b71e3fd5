"""
Reel Batch Utilities
Logging, configuration, retry and fallback helpers
"""

from .logger import get_logger, LogLevel
from .retry import retry_operation, RetryConfig, first_success, FallbackError
from .config import AppConfig, ConfigError, load_config

__all__ = [
    'get_logger', 'LogLevel',
    'retry_operation', 'RetryConfig', 'first_success', 'FallbackError',
    'AppConfig', 'ConfigError', 'load_config'
]
