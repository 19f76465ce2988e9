"""
AI Module

This module provides the translation backend client and its error taxonomy.
The client itself lives in lingobatch.ai.client; only the exceptions are
re-exported here so leaf modules can import them without pulling in httpx.
"""

from lingobatch.ai.exceptions import (
    TranslationError,
    AuthenticationError,
    RateLimitError,
    TransientNetworkError,
    MalformedResponseError,
    RunAbortError,
    ResourceFormatError,
    ConfigError,
)

__all__ = [
    'TranslationError',
    'AuthenticationError',
    'RateLimitError',
    'TransientNetworkError',
    'MalformedResponseError',
    'RunAbortError',
    'ResourceFormatError',
    'ConfigError',
]
