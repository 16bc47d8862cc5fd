"""
Conversation listing and mutation commands (list, archive, delete).
"""
import click

from chatgpt_exporter.cli.common import (
    cancel_on_interrupt,
    create_list_progress_callback,
    max_conversations_option,
)
from chatgpt_exporter.core.errors import AuthExpiredError, Cancelled
from chatgpt_exporter.core.utils import format_timestamp


@click.command('list')
@click.option('--archived', is_flag=True, help='List archived conversations')
@max_conversations_option
@click.pass_context
def list_conversations(ctx, archived, max_conversations):
    """List conversations, most recently updated first."""
    exporter = ctx.obj.get_exporter()

    with cancel_on_interrupt(ctx.obj.cancel_token):
        try:
            summaries = exporter.list_conversations(
                on_progress=create_list_progress_callback(),
                include_archived=archived,
                max_conversations=max_conversations,
            )
        except Cancelled:
            click.secho("\nCancelled.", fg='yellow')
            raise click.Abort()
        except AuthExpiredError as e:
            click.secho(f"Authentication failed: {e}", fg='red', err=True)
            raise click.Abort()
        except Exception as e:
            click.secho(f"Error listing conversations: {e}", fg='red', err=True)
            if ctx.obj.verbose:
                import traceback
                click.echo(traceback.format_exc(), err=True)
            raise click.Abort()

    if not summaries:
        click.echo("No conversations found.")
        return

    for summary in summaries:
        updated = format_timestamp(summary.updated_at) or '-'
        click.echo(f"{summary.id}  {updated[:19]}  {summary.title}")
    click.echo(f"\n{len(summaries)} conversations")


def _run_mutation(ctx, action, conversation_ids):
    manager = ctx.obj.get_manager()
    call = manager.archive if action == 'archive' else manager.delete

    with cancel_on_interrupt(ctx.obj.cancel_token) as token:
        try:
            results = call(conversation_ids, cancel=token)
        except Cancelled:
            click.secho("\nCancelled.", fg='yellow')
            raise click.Abort()
        except AuthExpiredError as e:
            click.secho(f"Authentication failed: {e}", fg='red', err=True)
            raise click.Abort()

    failed = [r for r in results if not r.ok]
    click.secho(f"  {action.capitalize()}d: {len(results) - len(failed)}", fg='green')
    if failed:
        click.secho(f"  Failed: {len(failed)}", fg='yellow')
        for result in failed:
            click.echo(f"    {result.conversation_id}: {result.error}")
        raise click.Abort()


@click.command()
@click.argument('conversation_ids', nargs=-1, required=True)
@click.pass_context
def archive(ctx, conversation_ids):
    """Archive conversations by id."""
    click.echo(f"Archiving {len(conversation_ids)} conversations...")
    _run_mutation(ctx, 'archive', conversation_ids)


@click.command()
@click.argument('conversation_ids', nargs=-1, required=True)
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def delete(ctx, conversation_ids, yes):
    """Delete conversations by id."""
    if not yes:
        click.confirm(f"Delete {len(conversation_ids)} conversations?", abort=True)
    click.echo(f"Deleting {len(conversation_ids)} conversations...")
    _run_mutation(ctx, 'delete', conversation_ids)
