"""
Tests for export orchestration and conversation mutations.
"""
from unittest.mock import Mock

import pytest

from chatgpt_exporter.core.cancellation import CancellationToken
from chatgpt_exporter.core.config import ExporterConfig
from chatgpt_exporter.core.errors import (
    AuthExpiredError,
    Cancelled,
    ExportCancelled,
    NetworkError,
    UnsupportedFormatError,
)
from chatgpt_exporter.core.models import ConversationProgress
from chatgpt_exporter.core.source_schemas import ConversationListItem
from chatgpt_exporter.extractors.content import MessageContentExtractor
from chatgpt_exporter.services import ConversationExporter, ConversationManager

from fakes import FakeReader, branching_payload, conversation_payload, linear_payload, node


@pytest.fixture
def reader():
    return FakeReader(conversations={
        "conv-1": branching_payload("conv-1"),
        "conv-bad": NetworkError("HTTP 502 after 3 attempts", status_code=502),
        "conv-2": linear_payload("conv-2"),
    })


def test_run_records_failures_and_continues(reader):
    session = ConversationExporter(reader).run(["conv-1", "conv-bad", "conv-2"])

    assert list(session.conversations) == ["conv-1", "conv-2"]
    assert [(e.conversation_id, e.error_type) for e in session.errors] == [("conv-bad", "NetworkError")]
    assert reader.detail_calls == ["conv-1", "conv-bad", "conv-2"]
    assert not session.sealed


def test_export_returns_result_and_artifact(reader):
    result = ConversationExporter(reader).export(["conv-1", "conv-bad", "conv-2"], "json")

    assert result.successful == ["conv-1", "conv-2"]
    assert result.failed == ["conv-bad"]
    assert result.session.sealed
    assert result.artifact.filename == f"chatgpt-export-{result.session.id}.json"


def test_unsupported_format_fails_before_requests(reader):
    with pytest.raises(UnsupportedFormatError):
        ConversationExporter(reader).export(["conv-1"], "docx")
    assert reader.detail_calls == []


def test_auth_expiry_aborts_run(reader):
    reader.conversations["conv-1"] = AuthExpiredError("token expired")

    with pytest.raises(AuthExpiredError):
        ConversationExporter(reader).run(["conv-1", "conv-2"])

    assert reader.detail_calls == ["conv-1"]


def test_progress_events(reader):
    events = []
    ConversationExporter(reader).run(["conv-1", "conv-2"], on_progress=events.append)

    assert events[0] == ConversationProgress(1, 2, "conv-1")
    conv1_nodes = [(e.processed, e.node_total) for e in events if e.conversation_id == "conv-1" and e.node_total]
    assert conv1_nodes == [(1, 4), (2, 4), (3, 4), (4, 4)]
    assert events[-1].conversation_id == "conv-2"
    assert events[-1].processed == events[-1].node_total == 3


def test_cancel_between_conversations_keeps_partial_session(reader):
    token = CancellationToken()

    def on_progress(progress):
        if progress.conversation_id == "conv-1" and progress.node_total and \
                progress.processed == progress.node_total:
            token.cancel()

    with pytest.raises(ExportCancelled) as exc_info:
        ConversationExporter(reader).run(["conv-1", "conv-2"], on_progress=on_progress, cancel=token)

    assert isinstance(exc_info.value, Cancelled)
    assert list(exc_info.value.session.conversations) == ["conv-1"]
    assert reader.detail_calls == ["conv-1"]
    reader.requester.bind_cancellation.assert_called_once_with(token)


def test_cancellation_inside_extraction(reader):
    reader.conversations["conv-2"] = Cancelled("Operation cancelled")

    with pytest.raises(ExportCancelled) as exc_info:
        ConversationExporter(reader).run(["conv-1", "conv-2"])

    assert list(exc_info.value.session.conversations) == ["conv-1"]
    assert exc_info.value.session.errors == []


def test_download_assets_setting(reader):
    pointer = {"content_type": "image_asset_pointer", "asset_pointer": "file-service://file-img"}
    reader.conversations["conv-img"] = conversation_payload("conv-img", [
        node("root", children=["u1"]),
        node("u1", parent="root", role="user",
             content={"content_type": "multimodal_text", "parts": [pointer]}),
    ])
    reader.files["file-img"] = b"PNG"
    reader.requester.config = ExporterConfig(download_assets=False)

    session = ConversationExporter(reader).run(["conv-img"])
    assert reader.download_calls == []
    assert session.conversations["conv-img"].images["file-img"].payload is None

    session = ConversationExporter(reader).run(["conv-img"], download_assets=True)
    assert session.conversations["conv-img"].images["file-img"].payload == b"PNG"


def test_null_part_content_type_is_treated_as_text(reader):
    reader.conversations["conv-null"] = conversation_payload("conv-null", [
        node("root", children=["u1"]),
        node("u1", parent="root", role="user",
             content={"content_type": "multimodal_text", "parts": [{"content_type": None, "text": "hi"}]}),
    ])

    session = ConversationExporter(reader).run(["conv-null"])

    (message,) = session.conversations["conv-null"].messages
    assert message.parts[0].text == "hi"
    assert session.errors == []


def test_message_processing_failure_is_recorded_and_batch_continues(reader, monkeypatch):
    reader.conversations["conv-broken"] = conversation_payload("conv-broken", [
        node("root", children=["boom"]),
        node("boom", parent="root", role="user", text="unprocessable"),
    ])
    process = MessageContentExtractor.process

    def failing_process(self, node_id, parent_id, message):
        if node_id == "boom":
            raise AttributeError("'NoneType' object has no attribute 'endswith'")
        return process(self, node_id, parent_id, message)

    monkeypatch.setattr(MessageContentExtractor, "process", failing_process)

    session = ConversationExporter(reader).run(["conv-1", "conv-broken", "conv-2"])

    assert list(session.conversations) == ["conv-1", "conv-2"]
    assert [(e.conversation_id, e.error_type) for e in session.errors] == [("conv-broken", "AttributeError")]


def test_cancellation_while_processing_messages_is_not_wrapped(reader, monkeypatch):
    monkeypatch.setattr(
        MessageContentExtractor, "process", Mock(side_effect=Cancelled("Operation cancelled"))
    )

    with pytest.raises(ExportCancelled):
        ConversationExporter(reader).run(["conv-1"])


def test_list_conversations_builds_summaries():
    reader = FakeReader(listing=[
        ConversationListItem(id="c1", title="First", update_time="2025-01-02T03:04:05Z"),
        ConversationListItem(id="c2", title=None, create_time=1735689600.0, is_archived=True),
    ])

    summaries = ConversationExporter(reader).list_conversations()

    assert [s.id for s in summaries] == ["c1", "c2"]
    assert summaries[0].updated_at.hour == 3
    assert summaries[1].title == "Untitled"
    assert summaries[1].is_archived is True


def test_mutations_collect_per_id_results():
    reader = FakeReader()
    reader.failing_mutations = {"c2"}
    manager = ConversationManager(reader)

    results = manager.archive(["c1", "c2", "c3"])

    assert [(r.conversation_id, r.ok) for r in results] == [("c1", True), ("c2", False), ("c3", True)]
    assert "failed after 3 attempts" in results[1].error
    assert reader.mutations == [("archive", "c1"), ("archive", "c2"), ("archive", "c3")]


def test_delete_uses_delete_call():
    reader = FakeReader()
    results = ConversationManager(reader).delete(["c1"])
    assert results[0].ok
    assert reader.mutations == [("delete", "c1")]


def test_mutation_auth_expiry_is_fatal():
    reader = FakeReader()
    reader.archive_conversation = Mock(side_effect=AuthExpiredError("expired"))

    with pytest.raises(AuthExpiredError):
        ConversationManager(reader).archive(["c1", "c2"])
