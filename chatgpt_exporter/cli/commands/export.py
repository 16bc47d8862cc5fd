"""
Export command.

Extracts the selected conversations, renders them in the requested format
and saves the artifact into the output directory.
"""
from pathlib import Path

import click

from chatgpt_exporter.cli.common import (
    cancel_on_interrupt,
    create_list_progress_callback,
    create_progress_callback,
    format_option,
    max_conversations_option,
    output_dir_option,
)
from chatgpt_exporter.core.config import get_default_output_dir
from chatgpt_exporter.core.errors import AuthExpiredError, Cancelled, ExportCancelled


def _print_summary(session):
    stats = session.stats
    click.echo(f"  Messages: {stats.total_messages}")
    click.echo(f"  Files: {stats.total_files}, images: {stats.total_images}")
    click.secho(f"  Exported: {stats.total_conversations} conversations", fg='green')
    if session.errors:
        click.secho(f"  Failed: {stats.failed_conversations} conversations", fg='yellow')
        for error in session.errors:
            click.echo(f"    {error.conversation_id}: {error.error_type}: {error.message}")


@click.command()
@click.argument('conversation_ids', nargs=-1)
@click.option('--all', 'export_all', is_flag=True, help='Export every listed conversation')
@click.option('--archived', is_flag=True, help='With --all, export archived conversations')
@format_option
@output_dir_option
@click.option('--no-assets', is_flag=True, help='Do not download files and images')
@max_conversations_option
@click.pass_context
def export(ctx, conversation_ids, export_all, archived, export_format, output_dir,
           no_assets, max_conversations):
    """Export conversations by id, or all of them with --all."""
    if not conversation_ids and not export_all:
        click.secho("Pass conversation ids or --all", fg='red', err=True)
        raise click.Abort()

    ctx.obj.get_config(
        max_conversations=max_conversations,
        download_assets=False if no_assets else None,
    )
    exporter = ctx.obj.get_exporter()
    output_path = Path(output_dir) if output_dir else get_default_output_dir()

    with cancel_on_interrupt(ctx.obj.cancel_token) as token:
        try:
            ids = list(conversation_ids)
            if export_all:
                click.echo("Listing conversations...")
                summaries = exporter.list_conversations(
                    on_progress=create_list_progress_callback(),
                    include_archived=archived,
                )
                ids.extend(s.id for s in summaries)
            ids = list(dict.fromkeys(ids))

            click.echo(f"Exporting {len(ids)} conversations as {export_format}...")
            result = exporter.export(
                ids,
                export_format,
                on_progress=create_progress_callback(),
                cancel=token,
            )

        except ExportCancelled as e:
            click.secho("\nExport cancelled.", fg='yellow')
            _print_summary(e.session)
            if e.session.conversations:
                artifact = exporter.renderer.render(e.session, export_format)
                path = artifact.save(output_path)
                click.echo(f"Partial export saved to {path}")
            raise click.Abort()
        except Cancelled:
            click.secho("\nCancelled before the export started.", fg='yellow')
            raise click.Abort()
        except AuthExpiredError as e:
            click.secho(f"Authentication failed: {e}", fg='red', err=True)
            click.echo("Provide a fresh token with --access-token or CHATGPT_ACCESS_TOKEN.", err=True)
            raise click.Abort()
        except Exception as e:
            click.secho(f"Error during export: {e}", fg='red', err=True)
            if ctx.obj.verbose:
                import traceback
                click.echo(traceback.format_exc(), err=True)
            raise click.Abort()

    click.echo("\nExport complete!")
    _print_summary(result.session)
    path = result.artifact.save(output_path)
    click.secho(f"Saved {path}", fg='green')
