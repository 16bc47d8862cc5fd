"""
Smoke tests for the click CLI with a fake API client.
"""
import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from chatgpt_exporter.cli import main
from chatgpt_exporter.cli.context import CLIContext
from chatgpt_exporter.core.errors import AuthExpiredError
from chatgpt_exporter.core.source_schemas import ConversationListItem

from fakes import FakeReader, branching_payload, linear_payload


@pytest.fixture
def reader():
    return FakeReader(
        conversations={"conv-1": branching_payload("conv-1"), "conv-2": linear_payload("conv-2")},
        listing=[
            ConversationListItem(id="conv-1", title="Branching", update_time=1735689600.0),
            ConversationListItem(id="conv-2", title="Linear", update_time=1735689500.0),
        ],
    )


@pytest.fixture
def runner(reader):
    with patch.object(CLIContext, "get_reader", return_value=reader):
        yield CliRunner()


def test_help_lists_commands(runner):
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("list", "export", "archive", "delete"):
        assert command in result.output


def test_export_saves_artifact(runner, tmp_path):
    result = runner.invoke(main, ["export", "conv-1", "--format", "json", "--output-dir", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Exported: 1 conversations" in result.output
    (saved,) = tmp_path.glob("chatgpt-export-*.json")
    document = json.loads(saved.read_text(encoding="utf-8"))
    assert document["conversations"][0]["id"] == "conv-1"


def test_export_all(runner, reader, tmp_path):
    result = runner.invoke(main, ["export", "--all", "-f", "markdown-archive", "-o", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert reader.detail_calls == ["conv-1", "conv-2"]
    assert len(list(tmp_path.glob("chatgpt-export-*-markdown.zip"))) == 1


def test_export_requires_ids(runner):
    result = runner.invoke(main, ["export"])
    assert result.exit_code == 1
    assert "Pass conversation ids or --all" in result.output


def test_export_auth_failure(runner, reader, tmp_path):
    reader.conversations["conv-1"] = AuthExpiredError("token expired")

    result = runner.invoke(main, ["export", "conv-1", "-o", str(tmp_path)])

    assert result.exit_code == 1
    assert "Authentication failed" in result.output
    assert list(tmp_path.iterdir()) == []


def test_list_prints_conversations(runner):
    result = runner.invoke(main, ["list"])

    assert result.exit_code == 0, result.output
    assert "conv-1" in result.output
    assert "Linear" in result.output
    assert "2 conversations" in result.output


def test_archive_reports_failures(runner, reader):
    reader.failing_mutations = {"conv-2"}

    result = runner.invoke(main, ["archive", "conv-1", "conv-2"])

    assert result.exit_code == 1
    assert "Archived: 1" in result.output
    assert "Failed: 1" in result.output
    assert reader.mutations == [("archive", "conv-1"), ("archive", "conv-2")]


def test_delete_asks_for_confirmation(runner, reader):
    result = runner.invoke(main, ["delete", "conv-1"], input="n\n")
    assert result.exit_code == 1
    assert reader.mutations == []

    result = runner.invoke(main, ["delete", "conv-1", "--yes"])
    assert result.exit_code == 0, result.output
    assert reader.mutations == [("delete", "conv-1")]


def test_export_all_skips_ids_already_given(runner, reader, tmp_path):
    result = runner.invoke(main, ["export", "conv-2", "conv-2", "--all", "-o", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Exporting 2 conversations" in result.output
    assert reader.detail_calls == ["conv-2", "conv-1"]
