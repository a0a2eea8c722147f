"""CLI entry point for exporting conversations.

Allows running the exporter as a module:
    python -m gpt_exporter.export export conversations.json
"""

import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

import click

from gpt_exporter.config import SUPPORTED_FORMATS, Config, load_config
from gpt_exporter.export.pipeline import export_conversations, find_conversation, load_conversations
from gpt_exporter.export.state import ExportState
from gpt_exporter.logging import get_logger, setup_logging
from gpt_exporter.markdown import transform

logger = get_logger("export")


def format_timestamp(ts: int) -> str:
    """Format timestamp for display."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _load_input(input_path: Path) -> list[dict]:
    try:
        return load_conversations(input_path)
    except (ValueError, OSError) as e:
        # json.JSONDecodeError is a ValueError
        click.echo(f"Error reading {input_path}: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to config.yaml",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Export ChatGPT conversations to Obsidian Markdown."""
    config = load_config(config_path)
    setup_logging("export", log_dir=config.log_dir, level=logging.DEBUG if verbose else logging.INFO)
    ctx.obj = config


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output-dir", "-o",
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory (defaults to export.output_path)",
)
@click.option(
    "--format", "-f", "formats",
    type=click.Choice(SUPPORTED_FORMATS),
    multiple=True,
    help="Output format; repeat for several (defaults to export.formats)",
)
@click.option("--new-only", is_flag=True, help="Only export new or updated conversations")
@click.option("--limit", "-n", default=0, help="Maximum number of conversations (0 = all)")
@click.option("--zip-threshold", type=int, help="Bundle into a ZIP above this many files")
@click.pass_obj
def export(
    config: Config,
    input_path: Path,
    output_dir: Path | None,
    formats: tuple[str, ...],
    new_only: bool,
    limit: int,
    zip_threshold: int | None,
) -> None:
    """Export conversations from INPUT_PATH."""
    conversations = _load_input(input_path)
    output_path = output_dir or config.export.output_path

    with ExportState(config.export.state_db) as state:
        result = export_conversations(
            conversations,
            output_path,
            formats=formats or config.export.formats,
            zip_threshold=zip_threshold if zip_threshold is not None else config.export.zip_threshold,
            state=state,
            new_only=new_only,
            limit=limit,
            tool_call_keys=config.markdown.tool_call_keys,
            base_url=config.markdown.source_base_url,
        )

    click.echo(f"Exported {result.conversations} conversations to {output_path}")
    if result.skipped:
        click.echo(f"Skipped {result.skipped} unchanged conversations")
    if result.failed:
        click.echo(f"Failed to render {result.failed} conversations (see log)", err=True)
    if result.archive_path is not None:
        click.echo(f"Archive: {result.archive_path}")
    else:
        for path in result.written:
            click.echo(f"  {path}")


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("conversation_id")
@click.pass_obj
def render(config: Config, input_path: Path, conversation_id: str) -> None:
    """Print one conversation as Markdown.

    CONVERSATION_ID may be the full id or a prefix such as the short id.
    """
    conversation = find_conversation(_load_input(input_path), conversation_id)
    if conversation is None:
        click.echo(f"Conversation not found: {conversation_id}", err=True)
        sys.exit(1)

    exported = transform(
        conversation,
        tool_call_keys=config.markdown.tool_call_keys,
        base_url=config.markdown.source_base_url,
    )
    click.echo(f"<!-- {exported.filename} -->", err=True)
    click.echo(exported.content)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.option("--list", "list_records", is_flag=True, help="List every exported conversation")
@click.pass_obj
def stats(config: Config, as_json: bool, list_records: bool) -> None:
    """Show export history statistics."""
    with ExportState(config.export.state_db) as state:
        result = state.get_stats()
        records = state.list_records() if list_records else []

    if list_records:
        if as_json:
            click.echo(json.dumps([asdict(record) for record in records], indent=2))
            return
        for record in records:
            exported = format_timestamp(record.exported_at) if record.exported_at is not None else "-"
            click.echo(f"{record.conversation_id}  {exported}")
        click.echo(f"Total: {len(records)}")
        return

    if as_json:
        click.echo(json.dumps({
            "total_exported": result.total_exported,
            "last_sync_time": result.last_sync_time,
        }))
        return

    click.echo(f"Exported conversations: {result.total_exported}")
    if result.last_sync_time is not None:
        click.echo(f"Last export: {format_timestamp(result.last_sync_time)}")
    else:
        click.echo("Last export: never")


@cli.command("clear-history")
@click.confirmation_option(prompt="Forget all exported conversations?")
@click.pass_obj
def clear_history(config: Config) -> None:
    """Forget which conversations were exported."""
    with ExportState(config.export.state_db) as state:
        state.clear_history()
    logger.info("Cleared export history: state_db=%s", config.export.state_db)
    click.echo("Export history cleared")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
