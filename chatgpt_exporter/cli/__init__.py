"""
Click-based command line interface.

    python -m chatgpt_exporter list
    python -m chatgpt_exporter export --all --format markdown-archive
    python -m chatgpt_exporter archive <id> <id> ...
"""

import logging

import click

from chatgpt_exporter.cli.commands.export import export
from chatgpt_exporter.cli.commands.manage import archive, delete, list_conversations
from chatgpt_exporter.cli.context import CLIContext


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.option(
    '--access-token',
    envvar='CHATGPT_ACCESS_TOKEN',
    help='Bearer token (default: CHATGPT_ACCESS_TOKEN or .dlt/secrets.toml)'
)
@click.option('--account-id', help='Workspace id for team accounts (ChatGPT-Account-Id)')
@click.option('--api-base-url', help='Backend API base URL')
@click.pass_context
def main(ctx, verbose, access_token, account_id, api_base_url):
    """Export, archive and delete ChatGPT conversations."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    ctx.obj = CLIContext(
        verbose=verbose,
        access_token=access_token,
        config_overrides={'account_id': account_id, 'api_base_url': api_base_url},
    )


main.add_command(list_conversations)
main.add_command(export)
main.add_command(archive)
main.add_command(delete)

__all__ = ['main']
