import json

import pytest
from click.testing import CliRunner

from news_dialogue.cli import cli
from news_dialogue.config import Settings
from news_dialogue.core.exceptions import ExtractionError
from news_dialogue.extraction.core_extractor import UnifiedExtractor
from news_dialogue.extraction.readability_adapter import ReadabilityAdapter
from news_dialogue.services.dialogue_client import DialogueClient
from news_dialogue.services.prompt_session import PromptSessionManager

from conftest import ARTICLE_TEXT, FakeLanguageModel, FakeReadabilityEngine, FakeSession, article_html


@pytest.fixture(autouse=True)
def offline_extractor(mocker):
    mocker.patch('news_dialogue.cli.setup_logging')
    extractor = UnifiedExtractor(readability_adapter=ReadabilityAdapter(engine=FakeReadabilityEngine(None)))
    return mocker.patch('news_dialogue.cli.get_content_extractor', return_value=extractor)


@pytest.fixture
def article_file(tmp_path):
    path = tmp_path / 'article.html'
    path.write_text(article_html(f'<main><p>{ARTICLE_TEXT}</p></main>'), encoding='utf-8')
    return str(path)


@pytest.fixture
def empty_file(tmp_path):
    path = tmp_path / 'empty.html'
    path.write_text(article_html('<div>Nothing here.</div>'), encoding='utf-8')
    return str(path)


def _fake_client(mocker, session):
    client = DialogueClient(PromptSessionManager(FakeLanguageModel([session])),
                            settings=Settings(ASSISTANT_NAME='HotTea'))
    mocker.patch('news_dialogue.cli.build_dialogue_client', return_value=client)
    return client


def test_extract_json(article_file):
    result = CliRunner().invoke(cli, ['extract', '--html-file', article_file,
                                      '--url', 'https://blog.example.org/post', '--json'])

    assert result.exit_code == 0, result.output
    record = json.loads(result.output)
    assert record['source'] == 'Basic extraction'
    assert record['confidence'] == 'low'
    assert record['url'] == 'https://blog.example.org/post'


def test_extract_table(article_file):
    result = CliRunner().invoke(cli, ['extract', '--html-file', article_file])

    assert result.exit_code == 0, result.output
    assert 'Extraction Result' in result.output
    assert 'Basic extraction' in result.output


def test_extract_without_content_exits_with_message_key(empty_file):
    result = CliRunner().invoke(cli, ['extract', '--html-file', empty_file])

    assert result.exit_code == 1
    assert 'insufficientContent' in result.output


def test_extract_requires_a_source():
    result = CliRunner().invoke(cli, ['extract'])

    assert result.exit_code == 2
    assert '--url or --html-file' in result.output


def test_dialogue_streams_messages(mocker, article_file):
    session = FakeSession(chunks=['{"speaker":"Mayor Lin","content":"We approved it."}\n',
                                  '{"summary":"Plan approved."}\n'])
    _fake_client(mocker, session)

    result = CliRunner().invoke(cli, ['dialogue', '--html-file', article_file, '--user-name', 'Sam'])

    assert result.exit_code == 0, result.output
    assert 'Mayor Lin' in result.output
    assert 'Plan approved.' in result.output
    assert 'Sam' in session.prompts[0]
    assert session.destroyed


def test_ask_prints_answer(mocker, article_file):
    answer = {'relevanceScore': 90, 'isRelevant': True, 'response': 'Next spring.',
              'responseType': 'answer', 'suggestedQuestions': ['What will it cost?']}
    _fake_client(mocker, FakeSession(responses=[json.dumps(answer)]))

    result = CliRunner().invoke(cli, ['ask', '--html-file', article_file, '-q', 'When does construction start?'])

    assert result.exit_code == 0, result.output
    assert 'HotTea' in result.output
    assert 'Next spring.' in result.output
    assert 'What will it cost?' in result.output


def test_ask_failure_exits_nonzero(mocker, article_file):
    _fake_client(mocker, FakeSession(responses=['not json']))

    result = CliRunner().invoke(cli, ['ask', '--html-file', article_file, '-q', 'Anything?'])

    assert result.exit_code == 1
    assert 'Question failed' in result.output


def test_fetch_failure_exits_nonzero(mocker):
    mocker.patch('news_dialogue.cli.AsyncHTTPClient.fetch_page',
                 side_effect=ExtractionError('HTTP 403 fetching https://news.example.com/a'))

    result = CliRunner().invoke(cli, ['extract', '--url', 'https://news.example.com/a'])

    assert result.exit_code == 1
    assert 'Could not load page' in result.output
    assert 'HTTP 403' in result.output
