"""
Tests for the JSON, Markdown and HTML renderers.
"""
import io
import json
import zipfile
from datetime import datetime, timezone

import pytest

from chatgpt_exporter.core.errors import NetworkError, SessionSealedError, UnsupportedFormatError
from chatgpt_exporter.core.models import ExportSession, ProcessedMessage
from chatgpt_exporter.extractors import AssetFetcher, ConversationExtractor
from chatgpt_exporter.renderers import ExportFormat, ExportRenderer
from chatgpt_exporter.renderers.base import role_label
from chatgpt_exporter.renderers.html_renderer import format_inline, format_text
from chatgpt_exporter.renderers.markdown_renderer import fence

from fakes import FakeReader, conversation_payload, linear_payload, node

EXPORTED_AT = datetime(2025, 2, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def session():
    """
    Two extracted conversations and one failure.

    conv-1: root -> A (user, failed attachment) -> [B (image), C]
    conv-2: linear user/assistant exchange
    """
    image = {"content_type": "image_asset_pointer", "asset_pointer": "file-service://file-img"}
    conv1 = conversation_payload("conv-1", [
        node("root", children=["A"]),
        node("A", parent="root", children=["B", "C"], role="user",
             text="Question <script>alert(1)</script> **bold**",
             metadata={"attachments": [
                 {"id": "file-doc", "name": "report.pdf", "size": 2048, "mime_type": "application/pdf"},
             ]}),
        node("B", parent="A", role="assistant",
             content={"content_type": "multimodal_text", "parts": ["Answer B", image]}),
        node("C", parent="A", role="assistant", text="Answer C"),
    ], current_node="C", title="Branching")

    reader = FakeReader(
        conversations={"conv-1": conv1, "conv-2": linear_payload("conv-2", title="Linear")},
        files={"file-img": b"PNG"},
    )
    extractor = ConversationExtractor(reader, AssetFetcher(reader))

    export_session = ExportSession(id="test-session", started_at=datetime(2025, 2, 1, tzinfo=timezone.utc))
    export_session.add_conversation(extractor.extract("conv-1"))
    export_session.add_conversation(extractor.extract("conv-2"))
    export_session.add_error("conv-3", NetworkError("HTTP 500 after 3 attempts"))
    return export_session


@pytest.fixture
def renderer():
    return ExportRenderer(now=lambda: EXPORTED_AT)


def _zip_entries(artifact):
    with zipfile.ZipFile(io.BytesIO(artifact.payload)) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


def test_json_counts_match_session(session, renderer):
    artifact = renderer.render(session, "json")
    document = json.loads(artifact.payload)

    assert artifact.filename == "chatgpt-export-test-session.json"
    assert document["exportedAt"] == EXPORTED_AT.isoformat()
    assert document["sessionId"] == "test-session"
    assert document["stats"]["totalConversations"] == 2
    assert sum(len(c["messages"]) for c in document["conversations"]) == 5
    assert document["stats"]["totalMessages"] == 5
    assert sum(len(c["files"]) + len(c["images"]) for c in document["conversations"]) == 2
    assert document["stats"]["failedConversations"] == 1
    assert document["errors"] == [{
        "conversationId": "conv-3",
        "errorType": "NetworkError",
        "message": "HTTP 500 after 3 attempts",
    }]


def test_json_lists_payloadless_assets_with_metadata(session, renderer):
    document = json.loads(renderer.render(session, ExportFormat.JSON).payload)
    conv1 = document["conversations"][0]

    assert conv1["files"] == [{
        "id": "file-doc",
        "name": "report.pdf",
        "size": 2048,
        "mimeType": "application/pdf",
        "source": "attachment",
        "downloaded": False,
    }]
    assert conv1["images"][0]["downloaded"] is True
    assert "payload" not in json.dumps(document)


def test_json_archive_layout(session, renderer):
    artifact = renderer.render(session, "json-archive")
    entries = _zip_entries(artifact)

    assert artifact.filename == "chatgpt-export-test-session-json.zip"
    assert set(entries) == {"conversations.json", "conv-1/images/file-img/file-img.bin"}
    assert entries["conv-1/images/file-img/file-img.bin"] == b"PNG"
    assert json.loads(entries["conversations.json"])["stats"]["totalConversations"] == 2


def test_markdown_archive_layout(session, renderer):
    entries = _zip_entries(renderer.render(session, "markdown-archive"))

    assert set(entries) == {
        "README.md",
        "conv-1/conversation.md",
        "conv-2/conversation.md",
        "conv-1/images/file-img/file-img.bin",
    }
    readme = entries["README.md"].decode()
    assert "[Branching](<conv-1/conversation.md>)" in readme
    assert "`conv-3`: NetworkError" in readme


def test_markdown_renders_branches_depth_first(session, renderer):
    markdown = _zip_entries(renderer.render(session, "markdown-archive"))["conv-1/conversation.md"].decode()
    lines = markdown.splitlines()

    assert lines[0] == "# Branching"
    assert "### User" in lines
    assert "> **Branch 1 of 2**" in lines
    assert "> **Branch 2 of 2**" in lines
    assert "> Answer B" in lines
    assert "> Answer C" in lines
    assert lines.index("> Answer B") < lines.index("> **Branch 2 of 2**") < lines.index("> Answer C")
    assert "> [file-img.bin]" in lines


def test_markdown_asset_sections(session, renderer):
    markdown = _zip_entries(renderer.render(session, "markdown-archive"))["conv-1/conversation.md"].decode()

    assert "*Attached:* [report.pdf]" in markdown
    assert "## Attachments" in markdown
    assert "- report.pdf (`file-doc`, 2.0 KB, application/pdf, not downloaded)" in markdown
    assert "## Images" in markdown
    assert "- [file-img.bin](<images/file-img/file-img.bin>) (3 B)" in markdown


def test_linear_markdown_is_not_indented(session, renderer):
    markdown = _zip_entries(renderer.render(session, "markdown-archive"))["conv-2/conversation.md"].decode()
    assert "Hello" in markdown.splitlines()
    assert "Hi there" in markdown.splitlines()
    assert "Branch" not in markdown


def test_fence_outgrows_backticks():
    assert fence("a ``` b", "python") == ["````python", "a ``` b", "````"]
    assert fence("plain") == ["```", "plain", "```"]


def test_html_archive_layout(session, renderer):
    artifact = renderer.render(session, "html-archive")
    entries = _zip_entries(artifact)

    assert artifact.filename == "chatgpt-export-test-session-html.zip"
    assert set(entries) == {
        "index.html",
        "conv-1/conversation.html",
        "conv-2/conversation.html",
        "conv-1/images/file-img/file-img.bin",
    }
    index = entries["index.html"].decode()
    assert 'href="conv-1/conversation.html"' in index
    assert "2 conversations, 5 messages" in index
    assert "conv-3" in index


def test_html_escapes_before_formatting(session, renderer):
    page = _zip_entries(renderer.render(session, "html-archive"))["conv-1/conversation.html"].decode()

    assert "<script>" not in page
    assert "Question &lt;script&gt;alert(1)&lt;/script&gt; <strong>bold</strong>" in page
    assert '<img src="images/file-img/file-img.bin" alt="file-img.bin" loading="lazy">' in page
    assert "report.pdf (not downloaded)" in page
    assert 'class="message assistant" style="margin-left: 24px"' in page


def test_format_inline():
    text = "a < b & **c** `<x> **y**` [link](https://e.com/?a=1&b=2) [bad](javascript:alert(1)) *em*"

    assert format_inline(text) == (
        "a &lt; b &amp; <strong>c</strong> <code>&lt;x&gt; **y**</code> "
        '<a href="https://e.com/?a=1&amp;b=2" rel="noopener noreferrer">link</a> '
        "[bad](javascript:alert(1)) <em>em</em>"
    )


def test_format_inline_leaves_link_targets_alone():
    assert format_inline("[draft](https://e.com/*draft*/x)") == (
        '<a href="https://e.com/*draft*/x" rel="noopener noreferrer">draft</a>'
    )
    assert format_inline("**[see](https://e.com/__a__)** and [*it*](https://e.com/**b**)") == (
        '<strong><a href="https://e.com/__a__" rel="noopener noreferrer">see</a></strong> and '
        '<a href="https://e.com/**b**" rel="noopener noreferrer"><em>it</em></a>'
    )
    assert format_inline("[x](https://e.com/`a`)") == "[x](https://e.com/<code>a</code>)"
    assert format_inline("`[x](https://e.com/)`") == "<code>[x](https://e.com/)</code>"


@pytest.mark.parametrize("role, author_name, expected", [
    ("user", None, "User"),
    ("assistant", None, "Assistant"),
    ("tool", "python", "Tool (python)"),
    ("critic", None, "Critic"),
])
def test_role_label(role, author_name, expected):
    message = ProcessedMessage(id="m", role=role, author_name=author_name)
    assert role_label(message) == expected


def test_format_text_code_blocks():
    html = format_text("Intro\n```python\nprint('<hi>')\n```\nOutro")

    assert html == (
        "<p>Intro</p>\n"
        '<pre><code class="language-python">print(&#x27;&lt;hi&gt;&#x27;)</code></pre>\n'
        "<p>Outro</p>"
    )


@pytest.mark.parametrize("export_format", ["json", "json-archive", "markdown-archive", "html-archive"])
def test_rendering_is_deterministic(session, renderer, export_format):
    first = renderer.render(session, export_format)
    second = renderer.render(session, export_format)
    assert first.payload == second.payload


def test_unsupported_format_leaves_session_open(session, renderer):
    with pytest.raises(UnsupportedFormatError):
        renderer.render(session, "pdf")
    assert not session.sealed


def test_session_is_sealed_after_render(session, renderer):
    renderer.render(session, "json")

    assert session.sealed
    with pytest.raises(SessionSealedError):
        session.add_error("conv-4", NetworkError("late"))


def test_export_format_parse():
    assert ExportFormat.parse(" JSON ") == ExportFormat.JSON
    assert ExportFormat.parse(ExportFormat.HTML_ARCHIVE) == ExportFormat.HTML_ARCHIVE
    with pytest.raises(UnsupportedFormatError):
        ExportFormat.parse("zip")
