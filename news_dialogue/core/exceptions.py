"""Custom exceptions for News Dialogue."""


class NewsDialogueError(Exception):
    """Base exception for News Dialogue."""
    pass


class ConfigurationError(NewsDialogueError):
    """Configuration related errors."""
    pass


class ExtractionError(NewsDialogueError):
    """Content extraction errors (absorbed at tier boundaries)."""
    pass


class EngineUnavailableError(ExtractionError):
    """Readability engine could not be loaded."""
    pass


class ReadabilityParseError(ExtractionError):
    """Readability engine refused or failed to parse a document."""
    pass


class SessionError(NewsDialogueError):
    """Language model session errors."""
    pass


class ModelUnavailableError(SessionError):
    """The language model back-end is not available."""
    pass


class InvalidSessionStateError(SessionError):
    """Session is destroyed or otherwise corrupted."""
    pass


class APIError(NewsDialogueError):
    """External API errors."""
    
    def __init__(self, message: str, status_code: int = None, response_text: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text
