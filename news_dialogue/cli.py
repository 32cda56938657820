"""Command line interface for News Dialogue."""

import asyncio
import json
import signal
import sys
from functools import wraps
from pathlib import Path
from typing import Optional

import click
from aiohttp import ClientError
from rich.console import Console
from rich.table import Table
from tenacity import RetryError

from . import __version__
from .config import get_settings
from .core.exceptions import ExtractionError
from .core.http_client import AsyncHTTPClient
from .extraction import PageDocument, get_content_extractor
from .models import ArticleRecord, StreamMessage
from .services.content_validator import ContentValidator
from .services.dialogue_client import DialogueClient
from .services.gemini_model import GeminiLanguageModel
from .services.prompt_session import PromptSessionManager
from .utils.logging_config import get_logger, log_operation, setup_logging


console = Console()
logger = get_logger(__name__, component='CLI')


def async_command(f):
    """Decorator to run async CLI commands."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper


def source_options(f):
    """--url / --html-file pair shared by every command."""
    f = click.option('--html-file', type=click.Path(exists=True, dir_okay=False),
                     help='Read HTML from a local file instead of fetching')(f)
    f = click.option('--url', help='Article URL (fetched unless --html-file is given)')(f)
    return f


async def load_document(url: Optional[str], html_file: Optional[str]) -> PageDocument:
    if html_file:
        html = Path(html_file).read_text(encoding='utf-8', errors='replace')
        return PageDocument(html, url or '')
    if not url:
        raise click.UsageError("Either --url or --html-file is required")

    async with AsyncHTTPClient() as client:
        page = await client.fetch_page(url)
    logger.debug(f"🌐 Fetched {len(page.html)} chars from {page.url}")
    return PageDocument(page.html, page.url)


async def extract_article(url: Optional[str], html_file: Optional[str]) -> ArticleRecord:
    """Load, extract and validate; exits with status 1 when nothing usable is found."""
    try:
        doc = await load_document(url, html_file)
    except (ExtractionError, ClientError, RetryError, asyncio.TimeoutError) as e:
        console.print(f"[red]❌ Could not load page:[/red] {e}")
        log_operation(logger, 'fetch', 'failed', url=url, error=type(e).__name__)
        sys.exit(1)

    extractor = get_content_extractor()
    record = await extractor.extract(doc)

    validator = ContentValidator()
    issue = validator.detect_content_issues(record)
    if issue is not None:
        console.print(f"[red]❌ {issue.details}[/red]")
        console.print(f"[dim]message key: {validator.get_message_key(issue.type)}[/dim]")
        log_operation(logger, 'extract', 'failed', issue=issue.type.value, site=issue.site or doc.hostname)
        sys.exit(1)

    log_operation(logger, 'extract', 'completed', source=record.source, confidence=record.confidence.value)
    return record


def print_record(record: ArticleRecord) -> None:
    table = Table(title="Extraction Result")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Title", record.title)
    table.add_row("Source", record.source)
    table.add_row("Confidence", record.confidence.value)
    table.add_row("Author", record.author or "-")
    table.add_row("Published", record.published_time or "-")
    table.add_row("Length", str(record.length))
    preview = (record.content[:400] + '...') if len(record.content) > 400 else record.content
    table.add_row("Content Preview", preview)
    console.print(table)


def build_dialogue_client() -> DialogueClient:
    settings = get_settings()
    model = GeminiLanguageModel(settings)
    return DialogueClient(PromptSessionManager(model), settings)


async def close_dialogue_client(client: DialogueClient) -> None:
    await client.session_manager.shutdown()
    model = client.session_manager.model
    if isinstance(model, GeminiLanguageModel):
        await model.aclose()


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Verbose logging')
def cli(verbose: bool):
    """News Dialogue - turn news pages into group-chat conversations."""
    setup_logging(level='DEBUG' if verbose else 'ERROR')


@cli.command()
@source_options
@click.option('--json', 'as_json', is_flag=True, help='Print the article record as JSON')
@async_command
async def extract(url: Optional[str], html_file: Optional[str], as_json: bool):
    """Extract the main article from a page."""
    record = await extract_article(url, html_file)
    if as_json:
        click.echo(json.dumps(record.to_dict(), ensure_ascii=False, indent=2))
    else:
        print_record(record)


@cli.command()
@source_options
@click.option('--user-name', help='Name used for the curious friend in the chat')
@click.option('--suggest', is_flag=True, help='Also suggest follow-up questions')
@async_command
async def dialogue(url: Optional[str], html_file: Optional[str], user_name: Optional[str], suggest: bool):
    """Stream a group-chat dialogue about the article."""
    record = await extract_article(url, html_file)
    console.print(f"[bold blue]{record.title}[/bold blue]\n")

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler not supported; Ctrl-C will not stop the stream cleanly")

    def show_message(message: StreamMessage) -> None:
        console.print(f"[bold cyan]{message.speaker}:[/bold cyan] {message.content}")

    client = build_dialogue_client()
    try:
        result = await client.generate_dialogue_stream(
            record.title, record.content, user_name, show_message, cancel_event)

        if result['aborted']:
            console.print(f"\n[yellow]⏹️ Stopped after {result['message_count']} messages[/yellow]")
        elif result['summary']:
            console.print(f"\n[bold green]Summary:[/bold green] {result['summary']}")

        if suggest and not result['aborted']:
            dialogue_lines = [{'speaker': m.speaker, 'content': m.content} for m in result['messages']]
            suggestions = await client.get_suggested_questions(
                dialogue_lines, record.content, record.title, cancel_event)
            console.print("\n[bold]Suggested questions:[/bold]")
            for question in suggestions['questions']:
                console.print(f"• {question}")
    except Exception as e:
        console.print(f"[red]❌ Dialogue generation failed:[/red] {e}")
        sys.exit(1)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await close_dialogue_client(client)


@cli.command()
@source_options
@click.option('--question', '-q', required=True, help='Follow-up question about the article')
@async_command
async def ask(url: Optional[str], html_file: Optional[str], question: str):
    """Ask a follow-up question about the article."""
    record = await extract_article(url, html_file)

    client = build_dialogue_client()
    try:
        answer = await client.ask_question(question, record.content, record.title)
    except Exception as e:
        console.print(f"[red]❌ Question failed:[/red] {e}")
        sys.exit(1)
    finally:
        await close_dialogue_client(client)

    console.print(f"[bold cyan]{answer['speaker']}:[/bold cyan] {answer.get('response', '')}")
    for suggestion in answer.get('suggested_questions') or []:
        console.print(f"• {suggestion}")


def main():
    cli()


if __name__ == '__main__':
    main()
