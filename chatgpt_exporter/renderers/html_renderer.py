"""
HTML-archive renderer.

Produces index.html plus {conversation_id}/conversation.html for every
conversation, with downloaded assets stored next to the page that links
them. Free text is escaped before any inline formatting is applied, so the
only tags in the output are the ones inserted here.
"""

import html
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional

from chatgpt_exporter.core.models import (
    Artifact,
    Asset,
    AssetKind,
    CodeOutput,
    ExportSession,
    ExtractedConversation,
)
from chatgpt_exporter.core.utils import format_timestamp, safe_filename
from chatgpt_exporter.extractors.tree import MessageTreeBuilder, TreeEntry

from .base import (
    ArchiveWriter,
    BaseRenderer,
    ExportFormat,
    find_asset,
    format_size,
    outputs_by_message,
    role_label,
)

logger = logging.getLogger(__name__)

INDENT_PX = 24

_FENCE = re.compile(r"^(`{3,})([\w+-]*)[ \t]*\n(.*?)\n\1[ \t]*$", re.DOTALL | re.MULTILINE)
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"(?<![\*\w])\*(?!\s)(.+?)(?<!\s)\*(?![\*\w])")
_INLINE_TOKEN = re.compile(
    r"`(?P<code>[^`\n]+)`|\[(?P<label>[^\]\n]+)\]\((?P<url>https?://[^\s)`]+)\)"
)
_PLACEHOLDER = "\x00{}\x00"

STYLE = """
body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
       max-width: 960px; margin: 0 auto; padding: 24px; color: #1f2328; }
h1 { font-size: 1.6em; }
.meta { color: #59636e; font-size: 0.9em; }
.message { border-left: 4px solid #d0d7de; padding: 8px 12px; margin: 12px 0; }
.message.user { border-color: #0969da; background: #f6f8fa; }
.message.assistant { border-color: #1a7f37; }
.message.system { border-color: #9a6700; }
.message.tool { border-color: #8250df; background: #fbf8ff; }
.role { font-weight: 600; margin-bottom: 4px; }
.branch { color: #59636e; font-size: 0.85em; font-style: italic; }
.missing { color: #cf222e; font-style: italic; }
pre { background: #f6f8fa; padding: 8px; overflow-x: auto; }
code { font-family: ui-monospace, SFMono-Regular, Menlo, monospace; }
img { max-width: 100%; }
table { border-collapse: collapse; width: 100%; }
th, td { border-bottom: 1px solid #d0d7de; padding: 4px 8px; text-align: left; }
"""


def format_inline(text: str) -> str:
    """
    Escape text and apply inline formatting.

    Code spans and links are swapped out for placeholders, leftmost first,
    before bold and italic run, so neither code content nor an href is
    ever formatted.
    """
    escaped = html.escape(text, quote=True)
    spans: List[str] = []

    def stash(match: re.Match) -> str:
        if match.group("code") is not None:
            spans.append(f"<code>{match.group('code')}</code>")
        else:
            label = _BOLD.sub(r"<strong>\1</strong>", match.group("label"))
            label = _ITALIC.sub(r"<em>\1</em>", label)
            spans.append(f'<a href="{match.group("url")}" rel="noopener noreferrer">{label}</a>')
        return _PLACEHOLDER.format(len(spans) - 1)

    escaped = _INLINE_TOKEN.sub(stash, escaped)
    escaped = _BOLD.sub(r"<strong>\1</strong>", escaped)
    escaped = _ITALIC.sub(r"<em>\1</em>", escaped)

    for index, span in enumerate(spans):
        escaped = escaped.replace(_PLACEHOLDER.format(index), span)
    return escaped


def format_paragraphs(text: str) -> str:
    blocks = []
    for paragraph in re.split(r"\n\s*\n", text.strip()):
        if paragraph.strip():
            blocks.append("<p>" + format_inline(paragraph).replace("\n", "<br>\n") + "</p>")
    return "\n".join(blocks)


def code_block(code: str, language: Optional[str] = None) -> str:
    css = f' class="language-{html.escape(language)}"' if language else ""
    return f"<pre><code{css}>{html.escape(code)}</code></pre>"


def format_text(text: str) -> str:
    """Render fenced code blocks and formatted paragraphs."""
    out: List[str] = []
    position = 0
    for match in _FENCE.finditer(text):
        out.append(format_paragraphs(text[position:match.start()]))
        out.append(code_block(match.group(3), match.group(2) or None))
        position = match.end()
    out.append(format_paragraphs(text[position:]))
    return "\n".join(part for part in out if part)


def conversation_page_path(conversation_id: str) -> str:
    return f"{safe_filename(conversation_id)}/conversation.html"


def page(title: str, body: str) -> str:
    return (
        "<!doctype html>\n"
        '<html lang="en">\n<head>\n<meta charset="utf-8">\n'
        f"<title>{html.escape(title)}</title>\n"
        f"<style>{STYLE}</style>\n</head>\n<body>\n{body}\n</body>\n</html>\n"
    )


class HtmlRenderer:
    """Render extracted conversations as standalone HTML pages."""

    def __init__(self):
        self.tree_builder = MessageTreeBuilder()

    def render_conversation(self, conversation: ExtractedConversation) -> str:
        body = [f"<h1>{html.escape(conversation.title)}</h1>", '<div class="meta">']
        body.append(f"<div>ID: <code>{html.escape(conversation.id)}</code></div>")
        if conversation.created_at:
            body.append(f"<div>Created: {format_timestamp(conversation.created_at)}</div>")
        if conversation.updated_at:
            body.append(f"<div>Updated: {format_timestamp(conversation.updated_at)}</div>")
        if conversation.model:
            body.append(f"<div>Model: {html.escape(conversation.model)}</div>")
        body.append(f"<div>Messages: {len(conversation.messages)}</div>")
        body.append('</div>\n<p><a href="../index.html">&larr; All conversations</a></p>')

        tree = self.tree_builder.build(conversation.messages)
        outputs = outputs_by_message(conversation)
        for entry in tree.iter_depth_first():
            block = self._render_message(entry, conversation, outputs)
            if block:
                body.append(block)

        body.extend(self._render_documents(conversation))
        return page(conversation.title, "\n".join(body))

    def _render_message(
        self,
        entry: TreeEntry,
        conversation: ExtractedConversation,
        outputs: Dict[str, List[CodeOutput]],
    ) -> str:
        message = entry.message
        style = f' style="margin-left: {entry.depth * INDENT_PX}px"' if entry.depth else ""
        branch = ""
        if entry.starts_branch:
            branch = (
                f'<div class="branch"{style}>Branch {entry.branch_index + 1}'
                f" of {entry.branch_count}</div>\n"
            )
        if message.hidden:
            return branch

        content: List[str] = []
        inline_ids = set()
        for part in message.parts:
            if part.type == "asset":
                inline_ids.add(part.asset_id)
                asset = find_asset(conversation, part.asset_id)
                content.append(self._render_asset(asset, part.name or part.asset_id))
            elif part.text:
                if message.content_type in ("code", "execution_output"):
                    content.append(code_block(part.text))
                else:
                    content.append(format_text(part.text))

        for asset_id in message.image_ids + message.file_ids:
            if asset_id not in inline_ids:
                asset = find_asset(conversation, asset_id)
                content.append(self._render_asset(asset, asset_id))

        for output in outputs.get(message.id, []):
            content.append(self._render_code_output(output))

        if message.citations:
            cited = ", ".join(html.escape(c.title or c.file_id) for c in message.citations)
            content.append(f'<div class="meta">Cited files: {cited}</div>')

        if not content:
            return branch

        role = html.escape(message.role)
        timestamp = ""
        if message.created_at:
            timestamp = f' <span class="meta">{format_timestamp(message.created_at)}</span>'
        return (
            f'{branch}<div class="message {role}"{style} id="msg-{html.escape(message.id)}">\n'
            f'<div class="role">{html.escape(role_label(message))}{timestamp}</div>\n'
            + "\n".join(content)
            + "\n</div>"
        )

    @staticmethod
    def _render_asset(asset: Asset, fallback: str) -> str:
        if asset is None or not asset.has_payload:
            name = asset.display_name if asset else fallback
            return f'<div><span class="missing">{html.escape(name)} (not downloaded)</span></div>'
        href = html.escape(asset.relative_path())
        name = html.escape(asset.display_name)
        if asset.kind == AssetKind.IMAGE:
            return f'<div><img src="{href}" alt="{name}" loading="lazy"></div>'
        return (
            f'<div><a href="{href}" download>{name}</a>'
            f' <span class="meta">({html.escape(format_size(asset.size))})</span></div>'
        )

    @staticmethod
    def _render_code_output(output: CodeOutput) -> str:
        summary = "Code"
        if output.status:
            summary += f" ({html.escape(output.status)})"
        parts = [f"<details>\n<summary>{summary}</summary>"]
        if output.code:
            parts.append(code_block(output.code, output.language))
        if output.output:
            parts.append("<div class=\"meta\">Output</div>")
            parts.append(code_block(output.output))
        parts.append("</details>")
        return "\n".join(parts)

    def _render_documents(self, conversation: ExtractedConversation) -> List[str]:
        if not conversation.documents:
            return []
        body = ["<h2>Documents</h2>"]
        for document in conversation.documents:
            body.append(f"<h3>{html.escape(document.title or document.id)}</h3>")
            body.append(
                f'<div class="meta">{html.escape(document.doc_type or "document")},'
                f" {len(document.revisions)} revision(s)</div>"
            )
            if document.doc_type and document.doc_type.startswith("code"):
                body.append(code_block(document.content, document.doc_type.partition("/")[2] or None))
            else:
                body.append(format_text(document.content))
        return body

    def render_index(self, session: ExportSession, exported_at: datetime) -> str:
        stats = session.stats
        body = [
            "<h1>ChatGPT export</h1>",
            '<div class="meta">',
            f"<div>Exported at: {html.escape(exported_at.isoformat())}</div>",
            f"<div>Session: <code>{html.escape(session.id)}</code></div>",
            f"<div>{stats.total_conversations} conversations, {stats.total_messages} messages,"
            f" {stats.total_files} files, {stats.total_images} images</div>",
            "</div>",
            "<table>",
            "<tr><th>Title</th><th>Updated</th><th>Messages</th></tr>",
        ]
        for conversation in session.conversations.values():
            href = html.escape(conversation_page_path(conversation.id))
            updated = format_timestamp(conversation.updated_at) or ""
            body.append(
                f'<tr><td><a href="{href}">{html.escape(conversation.title)}</a></td>'
                f"<td>{updated}</td><td>{len(conversation.messages)}</td></tr>"
            )
        body.append("</table>")

        if session.errors:
            body.append("<h2>Failed conversations</h2>\n<ul>")
            for error in session.errors:
                body.append(
                    f"<li><code>{html.escape(error.conversation_id)}</code>:"
                    f" {html.escape(error.error_type)}: {html.escape(error.message)}</li>"
                )
            body.append("</ul>")
        return page("ChatGPT export", "\n".join(body))


class HtmlArchiveRenderer(BaseRenderer):
    """ZIP with index.html, one page per conversation and assets."""

    export_format = ExportFormat.HTML_ARCHIVE

    def __init__(self):
        self.pages = HtmlRenderer()

    def render(self, session: ExportSession, exported_at: datetime) -> Artifact:
        archive = ArchiveWriter()
        archive.write("index.html", self.pages.render_index(session, exported_at))

        for conversation in session.conversations.values():
            archive.write(
                conversation_page_path(conversation.id),
                self.pages.render_conversation(conversation),
            )
            archive.write_assets(conversation.id, conversation.files.values())
            archive.write_assets(conversation.id, conversation.images.values())

        logger.info("HTML archive: %d conversations", len(session.conversations))
        return Artifact(
            filename=self.artifact_name(session, "-html.zip"),
            media_type="application/zip",
            payload=archive.close(),
        )
