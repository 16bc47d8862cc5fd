"""
JSON and JSON-archive renderers.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict

from chatgpt_exporter.core.models import Artifact, ExportSession

from .base import ArchiveWriter, BaseRenderer, ExportFormat

logger = logging.getLogger(__name__)

DOCUMENT_NAME = "conversations.json"


def build_document(session: ExportSession, exported_at: datetime) -> Dict[str, Any]:
    """
    Build the JSON export document.

    Binary payloads are never embedded; assets appear as reference metadata
    (id, name, size, mimeType) whether or not they were downloaded.
    """
    return {
        "exportedAt": exported_at.isoformat(),
        "sessionId": session.id,
        "startedAt": session.started_at.isoformat(),
        "stats": session.stats.to_dict(),
        "errors": [e.to_dict() for e in session.errors],
        "conversations": [c.to_dict() for c in session.conversations.values()],
    }


def dump_document(document: Dict[str, Any]) -> bytes:
    return json.dumps(document, ensure_ascii=False, indent=2).encode("utf-8")


class JsonRenderer(BaseRenderer):
    """Single JSON document."""

    export_format = ExportFormat.JSON

    def render(self, session: ExportSession, exported_at: datetime) -> Artifact:
        payload = dump_document(build_document(session, exported_at))
        return Artifact(
            filename=self.artifact_name(session, ".json"),
            media_type="application/json",
            payload=payload,
        )


class JsonArchiveRenderer(BaseRenderer):
    """ZIP with the JSON document and every downloaded asset."""

    export_format = ExportFormat.JSON_ARCHIVE

    def render(self, session: ExportSession, exported_at: datetime) -> Artifact:
        archive = ArchiveWriter()
        archive.write(DOCUMENT_NAME, dump_document(build_document(session, exported_at)))

        written = 0
        for conversation in session.conversations.values():
            written += archive.write_assets(conversation.id, conversation.files.values())
            written += archive.write_assets(conversation.id, conversation.images.values())

        logger.info("JSON archive: %d conversations, %d asset payloads", len(session.conversations), written)
        return Artifact(
            filename=self.artifact_name(session, "-json.zip"),
            media_type="application/zip",
            payload=archive.close(),
        )
