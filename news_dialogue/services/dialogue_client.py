"""Dialogue generation, follow-up Q&A and question suggestions on top of model sessions."""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from ..config import Settings, get_settings
from ..core.exceptions import APIError
from ..models import StreamMessage
from ..streaming import LineStreamParser
from ..utils.logging_config import get_logger, log_operation
from .prompt_session import ChunkCallback, PromptSessionManager
from .prompts import DIALOGUE_SCHEMA, QA_SCHEMA, SUGGESTIONS_SCHEMA, DialoguePrompts


logger = get_logger(__name__, component="DIALOGUE")

MIN_RELEVANCE_SCORE = 50
OFF_TOPIC_MESSAGE = ("That question seems unrelated to this news article. "
                     "Try asking about the people, events or impact it describes.")

# Model response key -> returned key
QA_FIELDS = {
    'relevanceScore': 'relevance_score',
    'isRelevant': 'is_relevant',
    'response': 'response',
    'responseType': 'response_type',
    'suggestedQuestions': 'suggested_questions',
    'sources': 'sources',
    'searchQueries': 'search_queries',
}


def _parse_json(raw_response: str, what: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(raw_response)
    except ValueError as e:
        raise APIError(f"Invalid JSON in {what} response: {e}", response_text=raw_response[:500]) from e
    if not isinstance(parsed, dict):
        raise APIError(f"Unexpected {what} response shape", response_text=raw_response[:500])
    return parsed


class DialogueClient:
    """Turns an extracted article into a group-chat dialogue and answers questions about it."""

    def __init__(self, session_manager: PromptSessionManager, settings: Optional[Settings] = None):
        self.session_manager = session_manager
        self.settings = settings or get_settings()

    async def generate_dialogue_stream(self, news_title: str, news_content: str,
                                       user_name: Optional[str] = None,
                                       on_message: Optional[Callable[[StreamMessage], None]] = None,
                                       cancel_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        """Stream a JSON-Lines dialogue, calling ``on_message`` for each message as it arrives.

        Runs in a one-time session so earlier articles never leak into the conversation.
        """
        user_name = user_name or self.settings.default_user_name
        prompt = DialoguePrompts.dialogue_json_lines(news_title, news_content, user_name)
        log_operation(logger, 'generate_dialogue_stream', 'started', title=news_title[:50])

        async with self.session_manager.one_time_session(cancel_event) as session:
            parser = LineStreamParser(on_message=on_message, cancel_event=cancel_event)
            result = await parser.consume(session.prompt_streaming(prompt, cancel_event=cancel_event))

        log_operation(logger, 'generate_dialogue_stream', 'aborted' if result.aborted else 'completed',
                      messages=result.message_count, failures=result.parse_failure_count)

        return {
            'success': True,
            'message_count': result.message_count,
            'summary': result.summary,
            'parse_failure_count': result.parse_failure_count,
            'success_rate': result.success_rate,
            'aborted': result.aborted,
            'messages': result.messages,
        }

    async def generate_dialogue(self, news_title: str, news_content: str,
                                user_name: Optional[str] = None,
                                cancel_event: Optional[asyncio.Event] = None,
                                on_chunk: Optional[ChunkCallback] = None) -> Dict[str, Any]:
        """Full-JSON dialogue (characters, dialogue, summary) on the reused session."""
        user_name = user_name or self.settings.default_user_name
        prompt = DialoguePrompts.dialogue_full(news_title, news_content, user_name)

        if on_chunk is not None:
            raw_response = await self.session_manager.prompt_streaming(
                prompt, DIALOGUE_SCHEMA, cancel_event, on_chunk)
        else:
            raw_response = await self.session_manager.prompt(prompt, DIALOGUE_SCHEMA, cancel_event)

        return {'success': True, 'data': _parse_json(raw_response, 'dialogue')}

    async def ask_question(self, question: str, news_content: Optional[str], news_title: Optional[str],
                           qa_history: Optional[str] = None,
                           cancel_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        """Answer a follow-up question; off-topic questions (relevance < 50) are rejected."""
        logger.debug(f"🔍 Question: {len(question)} chars, content: {len(news_content or '')} chars, "
                     f"history: {len(qa_history or '')} chars")

        prompt = DialoguePrompts.question_answer(question, news_content, news_title, qa_history)
        try:
            raw_response = await self.session_manager.prompt(prompt, QA_SCHEMA, cancel_event)
            parsed = _parse_json(raw_response, 'Q&A')
        except Exception as e:
            logger.error(f"❌ Question answering failed: {type(e).__name__}: {e}")
            raise

        answer = {returned: parsed[key] for key, returned in QA_FIELDS.items() if key in parsed}

        relevance_score = answer.get('relevance_score')
        if isinstance(relevance_score, (int, float)) and relevance_score < MIN_RELEVANCE_SCORE:
            answer['response'] = OFF_TOPIC_MESSAGE
            answer['is_relevant'] = False
            answer['response_type'] = 'rejected'

        logger.info(f"✅ Question answered: relevance={relevance_score}, type={answer.get('response_type')}")

        return {
            'speaker': self.settings.assistant_name,
            **answer,
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }

    async def get_suggested_questions(self, dialogue: Union[str, List[Dict[str, Any]]],
                                      news_content: str, news_title: str,
                                      cancel_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        """3-5 follow-up questions, generated in a one-time session."""
        prompt = DialoguePrompts.suggested_questions(dialogue, news_content, news_title)

        async with self.session_manager.one_time_session(cancel_event) as session:
            raw_response = await session.prompt(prompt, response_constraint=SUGGESTIONS_SCHEMA,
                                                cancel_event=cancel_event)

        parsed = _parse_json(raw_response, 'suggestions')
        questions = [q for q in (parsed.get('questions') or []) if isinstance(q, str) and q.strip()]
        log_operation(logger, 'get_suggested_questions', 'completed', count=len(questions))
        return {'questions': questions, 'count': len(questions)}
