"""
Options and helpers shared by CLI commands.
"""
import signal
from contextlib import contextmanager

import click

from chatgpt_exporter.core.config import get_default_output_dir
from chatgpt_exporter.core.models import ConversationProgress, ListProgress
from chatgpt_exporter.renderers import ExportFormat


def output_dir_option(f):
    return click.option(
        '--output-dir', '-o',
        type=click.Path(file_okay=False),
        default=None,
        help=f'Directory for the export file (default: {get_default_output_dir()})'
    )(f)


def format_option(f):
    return click.option(
        '--format', '-f', 'export_format',
        type=click.Choice([fmt.value for fmt in ExportFormat]),
        default=ExportFormat.JSON.value,
        show_default=True,
        help='Export format'
    )(f)


def max_conversations_option(f):
    return click.option(
        '--max-conversations',
        type=click.IntRange(min=1),
        default=None,
        help='Stop listing after this many conversations (default: uncapped)'
    )(f)


def create_list_progress_callback():
    """Print listing progress after every page."""
    def callback(progress: ListProgress):
        total = progress.total if progress.total is not None else '?'
        click.echo(f"Listed {progress.fetched}/{total} conversations...")
    return callback


def create_progress_callback(node_every: int = 200):
    """
    Print one line per conversation plus node progress on large trees.

    Parameters
    ----
    node_every : int
        Report node progress every this many nodes
    """
    def callback(progress: ConversationProgress):
        if progress.node_total == 0:
            click.echo(f"[{progress.index}/{progress.total}] {progress.conversation_id}")
        elif progress.processed % node_every == 0:
            click.echo(f"    {progress.processed}/{progress.node_total} nodes")
    return callback


@contextmanager
def cancel_on_interrupt(token):
    """
    Turn the first Ctrl+C into a cancellation of token.

    The running request finishes, the export stops at the next suspension
    point and the partial result is reported. A second Ctrl+C interrupts
    immediately.
    """
    previous = signal.getsignal(signal.SIGINT)

    def handler(signum, frame):
        click.secho("\nCancelling after the current request (Ctrl+C again to abort)...",
                    fg='yellow', err=True)
        token.cancel()
        signal.signal(signal.SIGINT, previous)

    signal.signal(signal.SIGINT, handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)
