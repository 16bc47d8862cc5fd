"""
Shared pieces of the export renderers.

Archives are written deterministically: fixed entry timestamps and a fixed
entry order, so rendering the same session twice yields identical bytes
except for the explicit export timestamp.
"""

import io
import logging
import zipfile
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from chatgpt_exporter.core.errors import UnsupportedFormatError
from chatgpt_exporter.core.models import (
    Artifact,
    Asset,
    CodeOutput,
    ExportSession,
    ExtractedConversation,
    ProcessedMessage,
)
from chatgpt_exporter.core.source_schemas import AuthorRole

logger = logging.getLogger(__name__)

ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


class ExportFormat(str, Enum):
    """Supported export formats."""

    JSON = "json"
    JSON_ARCHIVE = "json-archive"
    MARKDOWN_ARCHIVE = "markdown-archive"
    HTML_ARCHIVE = "html-archive"

    @classmethod
    def parse(cls, value) -> "ExportFormat":
        """
        Parse a format value.

        Raises
        ------
        UnsupportedFormatError
            If value is not a known format
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            raise UnsupportedFormatError(str(value)) from e


ROLE_LABELS = {
    AuthorRole.USER: "User",
    AuthorRole.ASSISTANT: "Assistant",
    AuthorRole.SYSTEM: "System",
    AuthorRole.TOOL: "Tool",
}


def role_label(message: ProcessedMessage) -> str:
    label = ROLE_LABELS.get(message.role, message.role.capitalize() or "Unknown")
    if message.role == AuthorRole.TOOL and message.author_name:
        return f"{label} ({message.author_name})"
    return label


def outputs_by_message(conversation: ExtractedConversation) -> Dict[str, List[CodeOutput]]:
    grouped: Dict[str, List[CodeOutput]] = {}
    for output in conversation.code_outputs:
        grouped.setdefault(output.message_id, []).append(output)
    return grouped


def find_asset(conversation: ExtractedConversation, asset_id: str) -> Optional[Asset]:
    return conversation.images.get(asset_id) or conversation.files.get(asset_id)


def format_size(size: Optional[int]) -> str:
    if size is None:
        return "unknown size"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


class ArchiveWriter:
    """In-memory ZIP builder with reproducible entries."""

    def __init__(self):
        self._buffer = io.BytesIO()
        self._zip = zipfile.ZipFile(self._buffer, "w", compression=zipfile.ZIP_DEFLATED)
        self._names: Set[str] = set()

    def write(self, name: str, data) -> bool:
        """Add an entry; returns False if the name was already written."""
        if name in self._names:
            logger.debug("Skipping duplicate archive entry %s", name)
            return False
        if isinstance(data, str):
            data = data.encode("utf-8")
        info = zipfile.ZipInfo(name, date_time=ZIP_EPOCH)
        info.compress_type = zipfile.ZIP_DEFLATED
        info.external_attr = 0o644 << 16
        self._zip.writestr(info, data)
        self._names.add(name)
        return True

    def write_assets(self, conversation_id: str, assets: Iterable[Asset]) -> int:
        """Write every asset that has a payload; returns the number written."""
        written = 0
        for asset in assets:
            if asset.has_payload and self.write(asset.archive_path(conversation_id), asset.payload):
                written += 1
        return written

    def close(self) -> bytes:
        self._zip.close()
        return self._buffer.getvalue()


class BaseRenderer(ABC):
    """Renders a sealed export session into one artifact."""

    export_format: ExportFormat

    @abstractmethod
    def render(self, session: ExportSession, exported_at: datetime) -> Artifact:
        """
        Render the session.

        Parameters
        ----------
        session : ExportSession
            Sealed session
        exported_at : datetime
            Timestamp written into the artifact

        Returns
        -------
        Artifact
            Payload and suggested file name
        """

    @staticmethod
    def artifact_name(session: ExportSession, suffix: str) -> str:
        return f"chatgpt-export-{session.id}{suffix}"
