"""Services module."""

from .content_validator import ContentValidator
from .dialogue_client import DialogueClient
from .gemini_model import GeminiLanguageModel, GeminiSession
from .prompt_session import LanguageModel, ModelSession, PromptSessionManager, is_session_corrupted
from .prompts import DialoguePrompts

__all__ = [
    'ContentValidator',
    'DialogueClient',
    'GeminiLanguageModel',
    'GeminiSession',
    'LanguageModel',
    'ModelSession',
    'PromptSessionManager',
    'is_session_corrupted',
    'DialoguePrompts',
]
