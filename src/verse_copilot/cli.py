"""Main CLI entry point for verse-copilot."""

import asyncio
from pathlib import Path
from typing import Optional

import click
import structlog

from verse_copilot import __version__
from verse_copilot.config import AppConfig, get_config, set_config

logger = structlog.get_logger()


def setup_config(env_file: Optional[Path] = None, project_dir: Optional[Path] = None) -> AppConfig:
    """Load configuration from environment, then apply CLI overrides."""
    config = AppConfig.load(env_file)
    if project_dir is not None:
        config = config.model_copy(update={"project_dir": project_dir})
    set_config(config)
    return config


def load_document(path: Path, line: Optional[int], character: Optional[int]):
    """Snapshot a file and place the cursor; defaults to the end of the file."""
    from verse_copilot.context.document import DocumentSnapshot, Position
    from verse_copilot.utils.encoding import read_text

    document = DocumentSnapshot(text=read_text(path), path=path)
    lines = document.lines() or [""]
    if line is None:
        line = len(lines) - 1
    if character is None:
        character = len(document.line_text(line))
    return document, Position(line, character)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output")
@click.option("--log-file", type=click.Path(), help="Write JSON logs to file")
@click.option("--env-file", type=click.Path(exists=True), help="Path to .env file")
@click.option(
    "--project-dir",
    type=click.Path(exists=True, file_okay=False),
    help="Translation project directory (overrides PROJECT_DIR)",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(
    ctx,
    verbose: bool,
    quiet: bool,
    log_file: Optional[str],
    env_file: Optional[str],
    project_dir: Optional[str],
) -> None:
    """Verse completion for scripture translation drafts.

    Gathers source text, neighboring translations and similar pairs for the
    verse at the cursor, then asks a language model to finish it.
    """
    from verse_copilot.log import configure_logging

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    verbosity = 1 if verbose else (-1 if quiet else 0)
    configure_logging(verbosity=verbosity, log_file=Path(log_file) if log_file else None)

    setup_config(
        Path(env_file) if env_file else None,
        Path(project_dir) if project_dir else None,
    )


# =============================================================================
# Completion
# =============================================================================


@cli.command()
@click.argument("document", type=click.Path(exists=True, dir_okay=False))
@click.option("--line", type=int, help="Zero-based cursor line (default: last line)")
@click.option("--character", type=int, help="Zero-based cursor column (default: end of line)")
def complete(document: str, line: Optional[int], character: Optional[int]) -> None:
    """Complete the verse at the cursor and print the inserted text.

    Examples:

        verse-copilot --project-dir my-project complete draft.txt

        verse-copilot complete draft.txt --line 12 --character 30
    """
    from verse_copilot.completion.orchestrator import CompletionOrchestrator, CompletionState
    from verse_copilot.host import ConsoleHost

    config = get_config()
    snapshot, position = load_document(Path(document), line, character)
    host = ConsoleHost()
    orchestrator = CompletionOrchestrator.from_config(config, host)

    text = asyncio.run(orchestrator.trigger(snapshot, position))
    if text is None:
        if orchestrator.last_state == CompletionState.FAILED:
            raise SystemExit(1)
        return
    click.echo(text)


@cli.command()
@click.argument("document", type=click.Path(exists=True, dir_okay=False))
@click.option("--line", type=int, help="Zero-based cursor line (default: last line)")
@click.option("--character", type=int, help="Zero-based cursor column (default: end of line)")
@click.option("--messages", "show_messages", is_flag=True, help="Print the prompt messages instead")
def context(
    document: str, line: Optional[int], character: Optional[int], show_messages: bool
) -> None:
    """Show the context bundle gathered for the verse at the cursor."""
    from verse_copilot.completion.prompts import build_verse_messages
    from verse_copilot.context.assembler import ContextAssembler
    from verse_copilot.context.cache import ResultCache
    from verse_copilot.context.similarity import build_similarity_client
    from verse_copilot.errors import CopilotError
    from verse_copilot.host import ConsoleHost

    config = get_config()
    snapshot, position = load_document(Path(document), line, character)
    assembler = ContextAssembler(
        build_similarity_client(config.similarity, ResultCache()), host=ConsoleHost()
    )

    try:
        bundle = asyncio.run(assembler.assemble(snapshot, position, config))
    except CopilotError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if show_messages:
        for message in build_verse_messages(bundle):
            click.echo(f"[{message['role']}]")
            click.echo(message["content"])
        return
    click.echo(bundle.model_dump_json(indent=2))


@cli.command()
@click.argument("reference")
@click.option("--window", default=7, type=int, help="Number of verses before the reference")
def neighbors(reference: str, window: int) -> None:
    """List the verses around REFERENCE, e.g. "GEN 1:1".

    Crosses chapter and book boundaries using the bounds in the source text.
    """
    from rich.console import Console

    from verse_copilot.context.neighborhood import NeighborhoodExpander
    from verse_copilot.scripture.corpus import CorpusIndex
    from verse_copilot.scripture.project import resolve_source_text
    from verse_copilot.scripture.references import parse_reference

    config = get_config()
    ref = parse_reference(reference)
    if ref is None:
        raise click.BadParameter(f"Not a verse reference: {reference}", param_hint="REFERENCE")

    source_path = resolve_source_text(Path(config.project_dir), config.completion.source_text)
    if source_path is None:
        click.echo("Error: no source text found in the project", err=True)
        raise SystemExit(1)

    console = Console()
    for neighbor in NeighborhoodExpander(CorpusIndex(source_path)).expand(ref, window):
        style = "bold green" if neighbor == ref else "cyan"
        console.print(f"[{style}]{neighbor}[/{style}]")


# =============================================================================
# Settings and server
# =============================================================================


@cli.command("config")
@click.option("--check", is_flag=True, help="Exit non-zero if completion settings are incomplete")
def show_config(check: bool) -> None:
    """Show the effective configuration."""
    from verse_copilot.config import log_config_summary
    from verse_copilot.errors import ConfigurationInvalidError

    config = get_config()
    log_config_summary(config)
    if check:
        try:
            config.validate_for_completion()
        except ConfigurationInvalidError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)
        click.echo("Configuration is complete.")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8765, type=int, help="Bind port")
@click.option("--env-file", "serve_env_file", type=click.Path(), default=".env", help=".env file updated by PUT /settings")
def serve(host: str, port: int, serve_env_file: str) -> None:
    """Serve the completion API over HTTP."""
    import uvicorn

    from verse_copilot.api.server import create_app

    app = create_app(config=get_config(), env_file=Path(serve_env_file))

    click.echo("Verse Copilot API starting...")
    click.echo(f"   API: http://{host}:{port}/api/docs")
    click.echo("   Press Ctrl+C to stop\n")

    uvicorn.run(app, host=host, port=port, log_level="info", lifespan="on")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
