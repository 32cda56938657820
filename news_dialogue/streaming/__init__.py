"""Streaming helpers for model output."""

from .jsonl_parser import (
    LineStreamParser,
    ParserPhase,
    ParserState,
    extract_json_objects,
    strip_code_fence,
)

__all__ = [
    'LineStreamParser',
    'ParserPhase',
    'ParserState',
    'extract_json_objects',
    'strip_code_fence',
]
