#!/usr/bin/env python3
"""
btsend CLI

Command-line interface for sending a file to a paired Bluetooth device.

Usage:
    btsend peers                      # List paired devices
    btsend send ADDRESS FILE          # Send a file
    btsend config                     # Show effective configuration
"""

import json
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn, DownloadColumn, Progress, SpinnerColumn, TextColumn,
    TransferSpeedColumn
)
from rich.table import Table

from .bluetooth import PeerHandle
from .config import EXAMPLE_CONFIG, load_config
from .errors import PreconditionError
from .sender import FileSender
from .transfer import QueueDispatcher, SessionState, StatusSink

console = Console()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130

POWERED_OFF = "[red]Bluetooth is powered off; run 'bluetoothctl power on'[/red]"


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


class ProgressSink(StatusSink):
    """Renders session status onto a rich Progress bar."""

    def __init__(self, progress: Progress, task_id):
        self.progress = progress
        self.task_id = task_id
        self.final_state: Optional[SessionState] = None
        self.final_message = ''
        self.error = None

    def on_status(self, state, progress=None, error=None, message=''):
        if progress is not None:
            self.progress.update(self.task_id, completed=progress.bytes_transferred)
        elif message:
            self.progress.update(self.task_id, description=escape(message))

        if state.is_terminal:
            self.final_state = state
            self.final_message = message
            self.error = error


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='JSON config file')
@click.pass_context
def cli(ctx, verbose, config_path):
    """btsend - send files to paired Bluetooth devices."""
    ctx.ensure_object(dict)
    try:
        config = load_config(Path(config_path) if config_path else None)
    except (ValueError, json.JSONDecodeError) as e:
        raise click.BadParameter(str(e), param_hint='--config')
    setup_logging(verbose, config.log_level)
    ctx.obj['config'] = config


@cli.command()
@click.pass_context
def peers(ctx):
    """List paired devices."""
    sender = FileSender(ctx.obj['config'])

    if not sender.adapter.is_available():
        console.print("[red]bluetoothctl not found; is BlueZ installed?[/red]")
        ctx.exit(EXIT_FAILED)
    if not sender.adapter.is_powered():
        console.print(POWERED_OFF)
        ctx.exit(EXIT_FAILED)

    paired = sender.paired_peers()
    if not paired:
        console.print("[yellow]No paired Bluetooth devices found[/yellow]")
        return

    table = Table(title="Paired Devices")
    table.add_column("Name", style="cyan")
    table.add_column("Address", style="yellow")
    for peer in paired:
        table.add_row(escape(peer.name) if peer.name else "-", peer.address)
    console.print(table)


@cli.command()
@click.argument('address')
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--name', help='Display name for the device')
@click.option('--channel', type=int, help='RFCOMM channel when SDP is unavailable')
@click.option('--chunk-size', type=int, help='Bytes per write')
@click.option('--tcp', is_flag=True, help='Send over TCP (Bluetooth PAN) instead of RFCOMM')
@click.option('--timeout', type=float, help='Connect timeout in seconds')
@click.pass_context
def send(ctx, address, file_path, name, channel, chunk_size, tcp, timeout):
    """Send FILE to the paired device at ADDRESS."""
    config = ctx.obj['config']
    if channel is not None:
        config.rfcomm_channel = channel
    if chunk_size is not None:
        config.chunk_size = chunk_size
    if tcp:
        config.transport = 'tcp'
    if timeout is not None:
        config.connect_timeout = timeout

    try:
        sender = FileSender(config)
    except ValueError as e:
        raise click.BadParameter(str(e))

    peer = None
    if config.transport == 'rfcomm':
        if sender.adapter.is_available() and not sender.adapter.is_powered():
            console.print(POWERED_OFF)
            ctx.exit(EXIT_FAILED)
        peer = sender.adapter.find_paired(address)
        if peer is None:
            console.print(f"[yellow]{address} is not in the paired device list[/yellow]")
    if peer is None:
        peer = PeerHandle(address=address.upper() if config.transport == 'rfcomm' else address,
                          name=name or '')
    elif name:
        peer = PeerHandle(address=peer.address, name=name)

    file_path = Path(file_path)
    total = file_path.stat().st_size
    dispatcher = QueueDispatcher()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f"Selected device: {escape(peer.display_name)}", total=total)
        sink = ProgressSink(progress, task)

        try:
            session = sender.send_path(peer, file_path, sink, dispatcher)
        except PreconditionError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            ctx.exit(EXIT_FAILED)

        while True:
            try:
                dispatcher.pump(timeout=0.1)
            except KeyboardInterrupt:
                session.cancel()
                continue
            if not dispatcher.pending and (sink.final_state is not None or session.wait(0)):
                break

    final_state = sink.final_state or session.state
    if final_state == SessionState.SUCCEEDED:
        console.print(Panel.fit(
            f"[bold green]File sent successfully[/bold green]\n\n"
            f"File: [cyan]{escape(file_path.name)}[/cyan]\n"
            f"Size: [yellow]{format_size(total)}[/yellow]\n"
            f"Device: [blue]{escape(str(peer))}[/blue]",
            title="Transfer Complete"
        ))
        ctx.exit(EXIT_OK)
    elif final_state == SessionState.CANCELLED:
        console.print("\n[yellow]Transfer cancelled[/yellow]")
        ctx.exit(EXIT_CANCELLED)
    else:
        console.print(f"\n[red]✗ {escape(sink.final_message or 'File transfer failed')}[/red]")
        if sink.error:
            console.print(f"[dim]{escape(sink.error.describe())}[/dim]")
        ctx.exit(EXIT_FAILED)


@cli.command('config')
@click.option('--example', is_flag=True, help='Print an example config file')
@click.pass_context
def show_config(ctx, example):
    """Show the effective configuration."""
    if example:
        click.echo(EXAMPLE_CONFIG.strip())
        return
    click.echo(json.dumps(ctx.obj['config'].to_dict(), indent=2))


def format_size(bytes_count: int) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
