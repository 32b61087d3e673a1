#!/usr/bin/env python3
"""
ffgate CLI - run operations and probes against a local media root
without starting the HTTP server.
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Tuple

import click
from rich.console import Console
from rich.table import Table

from api.config import settings
from api.dependencies import build_dispatcher
from api.utils.logger import setup_logging
from pipeline.errors import GatewayError
from pipeline.models import OperationKind
from pipeline.schemas import describe_schemas
from pipeline.workspace import MediaWorkspace

console = Console()


def parse_option_pairs(pairs: Tuple[str, ...]) -> Dict[str, Any]:
    """``key=value`` pairs; values are read as JSON where possible so
    ``width=1280`` is a number and ``inputPaths=["a","b"]`` a list."""
    options: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--option")
        try:
            options[key] = json.loads(raw)
        except json.JSONDecodeError:
            options[key] = raw
    return options


def _fail(error: GatewayError) -> None:
    console.print(f"[red]Error ({error.code}): {error.message}[/red]")
    if error.details:
        console.print(f"[dim]{error.details}[/dim]")
    sys.exit(1)


@click.group()
@click.option('--media-root', type=click.Path(file_okay=False, path_type=Path),
              default=None, help='Root that input paths resolve under')
@click.option('--output-dir', type=click.Path(file_okay=False, path_type=Path),
              default=None, help='Output directory (relative to the media root unless absolute)')
@click.option('--log-level', default='warning',
              type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON responses')
@click.pass_context
def cli(ctx, media_root, output_dir, log_level, as_json):
    """ffgate - media edits compiled to FFmpeg pipelines"""
    setup_logging(level=log_level, debug=True)
    ctx.ensure_object(dict)
    ctx.obj['workspace'] = MediaWorkspace(
        media_root or settings.MEDIA_ROOT,
        output_dir or settings.OUTPUT_DIR,
    )
    ctx.obj['json'] = as_json


@cli.command()
@click.argument('operation', type=click.Choice(OperationKind.values()))
@click.argument('input_path')
@click.option('-o', '--option', 'pairs', multiple=True, help='Operation option as key=value')
@click.option('--options-json', default=None, help='All options as one JSON object')
@click.pass_context
def process(ctx, operation, input_path, pairs, options_json):
    """Run OPERATION on INPUT_PATH."""
    workspace = ctx.obj['workspace']
    options: Dict[str, Any] = {}
    if options_json:
        try:
            options.update(json.loads(options_json))
        except json.JSONDecodeError as e:
            raise click.BadParameter(str(e), param_hint="--options-json")
    options.update(parse_option_pairs(pairs))

    try:
        workspace.prepare()
        dispatcher = build_dispatcher(workspace=workspace)
        with console.status(f"[cyan]Running {operation}...[/cyan]"):
            response = asyncio.run(dispatcher.process(operation, input_path, options))
    except GatewayError as e:
        _fail(e)

    if ctx.obj['json']:
        click.echo(json.dumps(response, indent=2))
        return

    console.print(f"[green]✓ {response['message']}[/green]")
    table = Table(title="Output")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in response['output'].items():
        if isinstance(value, list):
            value = ", ".join(value)
        table.add_row(key, str(value))
    console.print(table)


@cli.command()
@click.argument('path')
@click.pass_context
def probe(ctx, path):
    """Show container and stream information for PATH."""
    dispatcher = build_dispatcher(workspace=ctx.obj['workspace'])
    try:
        info = asyncio.run(dispatcher.probe_media(path))
    except GatewayError as e:
        _fail(e)

    if ctx.obj['json']:
        click.echo(json.dumps(info, indent=2))
        return

    table = Table(title=f"Media Information: {path}")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Format", str(info['format']))
    table.add_row("Duration", f"{info['durationSeconds']:.2f} s")
    table.add_row("Size", info['size'])
    table.add_row("Bitrate", info['bitrate'])
    if info['video']:
        video = info['video']
        table.add_row("Video", f"{video['codec']} {video['width']}x{video['height']} @ {video['fps']} fps")
    else:
        table.add_row("Video", "[dim]none[/dim]")
    if info['audio']:
        audio = info['audio']
        table.add_row("Audio", f"{audio['codec']} {audio['sampleRate']} Hz, {audio['channels']} ch")
    else:
        table.add_row("Audio", "[dim]none[/dim]")
    console.print(table)


@cli.command()
@click.pass_context
def operations(ctx):
    """List supported operations and their options."""
    schemas = describe_schemas()
    if ctx.obj['json']:
        click.echo(json.dumps(schemas, indent=2))
        return

    table = Table(title="Supported Operations")
    table.add_column("Operation", style="cyan")
    table.add_column("Required")
    table.add_column("Optional")
    for name, schema in schemas.items():
        properties = schema.get('properties', {})
        required = schema.get('required', [])
        table.add_row(
            name,
            ", ".join(required) or "-",
            ", ".join(p for p in properties if p not in required) or "-",
        )
    console.print(table)


def main():
    """Main entry point for ffgate CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
