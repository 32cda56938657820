"""News Dialogue - article extraction and streamed group-chat dialogue generation."""

__version__ = "1.0.0"
