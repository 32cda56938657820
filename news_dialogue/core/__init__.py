"""Core infrastructure: exceptions and HTTP client."""

from .exceptions import (
    NewsDialogueError,
    ConfigurationError,
    ExtractionError,
    EngineUnavailableError,
    ReadabilityParseError,
    SessionError,
    ModelUnavailableError,
    InvalidSessionStateError,
    APIError,
)

__all__ = [
    'NewsDialogueError',
    'ConfigurationError',
    'ExtractionError',
    'EngineUnavailableError',
    'ReadabilityParseError',
    'SessionError',
    'ModelUnavailableError',
    'InvalidSessionStateError',
    'APIError',
]
