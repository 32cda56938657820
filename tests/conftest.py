import asyncio
from typing import List, Optional

import pytest

from news_dialogue.extraction.document import PageDocument
from news_dialogue.extraction.readability_engine import ReadabilityEngine, ReadabilityOptions
from news_dialogue.models import ReadabilityResult
from news_dialogue.services.prompt_session import AVAILABLE, LanguageModel, ModelSession


PARAGRAPHS = [
    "The city council approved the new transit plan on Tuesday after a lengthy debate that stretched "
    "late into the evening, with members citing rising ridership and aging infrastructure as key reasons.",
    "Under the plan, three new bus rapid transit lines will be built over the next five years, connecting "
    "the eastern suburbs to the downtown business district and the university campus.",
    "Officials estimate the total cost at 1.2 billion dollars, with roughly half coming from federal grants "
    "and the remainder funded through a combination of municipal bonds and a small sales tax increase.",
    "Critics argued that the sales tax would disproportionately affect lower-income residents, while "
    "supporters said the improved service would primarily benefit those same communities.",
    "Construction on the first line is expected to begin next spring, pending final environmental review "
    "and the completion of land acquisition along the planned corridor.",
]

ARTICLE_TEXT = " ".join(PARAGRAPHS)


def article_html(body: str = '', head: str = '', title: str = 'Council approves transit plan | City News') -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head><title>{title}</title>{head}</head>
<body>{body}</body>
</html>"""


def article_body(tag: str = 'article', attrs: str = '') -> str:
    paragraphs = "".join(f"<p>{p}</p>" for p in PARAGRAPHS)
    return f"<{tag}{attrs}><h1>Council approves transit plan</h1>{paragraphs}</{tag}>"


def make_readability_result(length: int = 1200, title: Optional[str] = 'Readability Title',
                            byline: Optional[str] = 'Jane Doe', text: Optional[str] = None,
                            **kwargs) -> ReadabilityResult:
    text_content = text if text is not None else (ARTICLE_TEXT * 3)[:max(length, 101)]
    return ReadabilityResult(
        title=title,
        content=f"<div><p>{text_content}</p></div>",
        text_content=text_content,
        length=length,
        byline=byline,
        **kwargs,
    )


class FakeReadabilityEngine(ReadabilityEngine):
    """Engine returning a canned result and recording what it was given."""

    def __init__(self, result: Optional[ReadabilityResult] = None, error: Optional[Exception] = None,
                 suitable: bool = True):
        self.result = result
        self.error = error
        self.suitable = suitable
        self.parsed_docs: List[PageDocument] = []
        self.options: List[ReadabilityOptions] = []

    def is_suitable(self, doc, min_content_length=200, min_score=20):
        return self.suitable

    def parse(self, doc, options=None):
        self.parsed_docs.append(doc)
        self.options.append(options)
        if self.error is not None:
            raise self.error
        return self.result


class FakeSession(ModelSession):
    """In-process model session with scripted answers."""

    def __init__(self, responses=None, chunks=None, errors=None, name='session'):
        self.responses = list(responses or [])
        self.chunks = list(chunks or [])
        self.errors = list(errors or [])
        self.name = name
        self.prompts: List[str] = []
        self.destroyed = False
        self.clone_error: Optional[Exception] = None
        self.stream_error: Optional[Exception] = None

    async def prompt(self, text, response_constraint=None, cancel_event=None):
        self.prompts.append(text)
        if self.errors:
            raise self.errors.pop(0)
        return self.responses.pop(0) if self.responses else ''

    async def prompt_streaming(self, text, response_constraint=None, cancel_event=None):
        self.prompts.append(text)
        if self.errors:
            raise self.errors.pop(0)
        for chunk in self.chunks:
            await asyncio.sleep(0)
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error

    async def clone(self):
        if self.clone_error is not None:
            raise self.clone_error
        return FakeSession(self.responses, self.chunks, name=f'{self.name}-clone')

    async def destroy(self):
        self.destroyed = True


class FakeLanguageModel(LanguageModel):
    """Hands out pre-built sessions in order."""

    def __init__(self, sessions=None, availability=AVAILABLE):
        self.sessions = list(sessions or [])
        self._availability = availability
        self.created: List[FakeSession] = []
        self.create_options: List[dict] = []

    async def availability(self):
        return self._availability

    async def params(self):
        return {'temperature': 0.7, 'top_k': 40, 'max_tokens': 4096}

    async def create(self, **options):
        self.create_options.append(options)
        await asyncio.sleep(0)
        session = self.sessions.pop(0) if self.sessions else FakeSession(name=f'auto-{len(self.created)}')
        self.created.append(session)
        return session


@pytest.fixture
def article_doc():
    return PageDocument(article_html(article_body()), 'https://news.example.com/2024/transit-plan')
