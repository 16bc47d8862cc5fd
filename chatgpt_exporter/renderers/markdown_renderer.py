"""
Markdown-archive renderer.

Each conversation becomes {conversation_id}/conversation.md next to its
downloaded assets. Branches of the message tree are rendered depth-first,
each fork one blockquote level deeper than its parent.
"""

import logging
import re
from datetime import datetime
from typing import Dict, List, Optional

from chatgpt_exporter.core.models import (
    Artifact,
    Asset,
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

_BACKTICK_RUN = re.compile(r"`+")


def fence(text: str, language: Optional[str] = None) -> List[str]:
    """Fenced code block whose fence is longer than any backtick run inside."""
    longest = max((len(m.group(0)) for m in _BACKTICK_RUN.finditer(text)), default=0)
    marker = "`" * max(3, longest + 1)
    return [f"{marker}{language or ''}", *text.splitlines(), marker]


def indent(lines: List[str], depth: int) -> List[str]:
    """Prefix lines with one blockquote marker per depth level."""
    if depth <= 0:
        return lines
    prefix = "> " * depth
    return [(prefix + line).rstrip() for line in lines]


def conversation_document_path(conversation_id: str) -> str:
    return f"{safe_filename(conversation_id)}/conversation.md"


class MarkdownRenderer:
    """Render extracted conversations as Markdown text."""

    def __init__(self):
        self.tree_builder = MessageTreeBuilder()

    def render_conversation(self, conversation: ExtractedConversation) -> str:
        lines = [f"# {conversation.title}", ""]
        lines.append(f"- **Conversation ID:** `{conversation.id}`")
        if conversation.created_at:
            lines.append(f"- **Created:** {format_timestamp(conversation.created_at)}")
        if conversation.updated_at:
            lines.append(f"- **Updated:** {format_timestamp(conversation.updated_at)}")
        if conversation.model:
            lines.append(f"- **Model:** {conversation.model}")
        lines.append(f"- **Messages:** {len(conversation.messages)}")
        lines.extend(["", "---", ""])

        tree = self.tree_builder.build(conversation.messages)
        outputs = outputs_by_message(conversation)

        for entry in tree.iter_depth_first():
            block: List[str] = []
            if entry.starts_branch:
                block.extend([f"**Branch {entry.branch_index + 1} of {entry.branch_count}**", ""])
            block.extend(self._render_message(entry, conversation, outputs))
            if block:
                lines.extend(indent(block, entry.depth))
                lines.append("")

        lines.extend(self._render_assets("Attachments", conversation.files.values()))
        lines.extend(self._render_assets("Images", conversation.images.values()))
        lines.extend(self._render_documents(conversation))

        return "\n".join(lines).rstrip() + "\n"

    def _render_message(
        self,
        entry: TreeEntry,
        conversation: ExtractedConversation,
        outputs: Dict[str, List[CodeOutput]],
    ) -> List[str]:
        message = entry.message
        if message.hidden:
            return []

        body: List[str] = []
        inline_ids = set()
        for part in message.parts:
            if part.type == "asset":
                inline_ids.add(part.asset_id)
                body.extend([f"[{part.name or part.asset_id}]", ""])
            elif part.text:
                if message.content_type in ("code", "execution_output"):
                    body.extend(fence(part.text))
                else:
                    body.extend(part.text.splitlines())
                body.append("")

        attached = []
        for asset_id in message.image_ids + message.file_ids:
            asset = find_asset(conversation, asset_id)
            if asset_id not in inline_ids and asset is not None:
                attached.append(f"[{asset.display_name}]")
        if attached:
            body.extend([f"*Attached:* {', '.join(attached)}", ""])

        for output in outputs.get(message.id, []):
            status = f" ({output.status})" if output.status else ""
            if output.code:
                body.extend([f"**Code**{status}", ""])
                body.extend(fence(output.code, output.language))
                body.append("")
            if output.output:
                body.extend(["**Output**", ""])
                body.extend(fence(output.output))
                body.append("")

        if message.citations:
            cited = ", ".join(f"[{c.title or c.file_id}]" for c in message.citations)
            body.extend([f"*Cited files:* {cited}", ""])

        if not body:
            return []

        header = [f"### {role_label(message)}"]
        if message.created_at:
            header.append(f"*{format_timestamp(message.created_at)}*")
        return header + [""] + body

    def _render_assets(self, heading: str, assets) -> List[str]:
        assets = list(assets)
        if not assets:
            return []
        lines = [f"## {heading}", ""]
        for asset in assets:
            lines.append(self._asset_line(asset))
        lines.append("")
        return lines

    @staticmethod
    def _asset_line(asset: Asset) -> str:
        details = format_size(asset.size)
        if asset.mime_type:
            details += f", {asset.mime_type}"
        if asset.has_payload:
            return f"- [{asset.display_name}](<{asset.relative_path()}>) ({details})"
        return f"- {asset.display_name} (`{asset.id}`, {details}, not downloaded)"

    def _render_documents(self, conversation: ExtractedConversation) -> List[str]:
        if not conversation.documents:
            return []
        lines = ["## Documents", ""]
        for document in conversation.documents:
            lines.extend([f"### {document.title or document.id}", ""])
            revisions = len(document.revisions)
            lines.extend([f"*{document.doc_type or 'document'}, {revisions} revision(s)*", ""])
            if document.doc_type and document.doc_type.startswith("code"):
                language = document.doc_type.partition("/")[2] or None
                lines.extend(fence(document.content, language))
            else:
                lines.extend(document.content.splitlines())
            lines.append("")
        return lines

    def render_index(self, session: ExportSession, exported_at: datetime) -> str:
        stats = session.stats
        lines = [
            "# ChatGPT export",
            "",
            f"- **Exported at:** {exported_at.isoformat()}",
            f"- **Session:** `{session.id}`",
            f"- **Conversations:** {stats.total_conversations}",
            f"- **Messages:** {stats.total_messages}",
            f"- **Files:** {stats.total_files}",
            f"- **Images:** {stats.total_images}",
            "",
            "## Conversations",
            "",
        ]
        for conversation in session.conversations.values():
            lines.append(
                f"- [{conversation.title}](<{conversation_document_path(conversation.id)}>)"
                f" ({len(conversation.messages)} messages)"
            )
        if session.errors:
            lines.extend(["", "## Failed conversations", ""])
            for error in session.errors:
                lines.append(f"- `{error.conversation_id}`: {error.error_type}: {error.message}")
        return "\n".join(lines) + "\n"


class MarkdownArchiveRenderer(BaseRenderer):
    """ZIP with one Markdown document per conversation plus assets."""

    export_format = ExportFormat.MARKDOWN_ARCHIVE

    def __init__(self):
        self.markdown = MarkdownRenderer()

    def render(self, session: ExportSession, exported_at: datetime) -> Artifact:
        archive = ArchiveWriter()
        archive.write("README.md", self.markdown.render_index(session, exported_at))

        for conversation in session.conversations.values():
            archive.write(
                conversation_document_path(conversation.id),
                self.markdown.render_conversation(conversation),
            )
            archive.write_assets(conversation.id, conversation.files.values())
            archive.write_assets(conversation.id, conversation.images.values())

        logger.info("Markdown archive: %d conversations", len(session.conversations))
        return Artifact(
            filename=self.artifact_name(session, "-markdown.zip"),
            media_type="application/zip",
            payload=archive.close(),
        )
