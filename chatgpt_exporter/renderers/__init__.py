"""
Export renderers.

ExportRenderer is the single entry point: it validates the format, seals the
session and dispatches to the renderer for that format.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from chatgpt_exporter.core.models import Artifact, ExportSession

from .base import BaseRenderer, ExportFormat
from .html_renderer import HtmlArchiveRenderer, HtmlRenderer
from .json_renderer import JsonArchiveRenderer, JsonRenderer
from .markdown_renderer import MarkdownArchiveRenderer, MarkdownRenderer

logger = logging.getLogger(__name__)


class ExportRenderer:
    """
    Render a completed export session into an artifact.

    Parameters
    ----------
    now : callable, optional
        Returns the export timestamp; defaults to the current UTC time
    """

    def __init__(self, now: Optional[Callable[[], datetime]] = None):
        self.now = now or (lambda: datetime.now(timezone.utc))
        self.renderers: Dict[ExportFormat, BaseRenderer] = {
            ExportFormat.JSON: JsonRenderer(),
            ExportFormat.JSON_ARCHIVE: JsonArchiveRenderer(),
            ExportFormat.MARKDOWN_ARCHIVE: MarkdownArchiveRenderer(),
            ExportFormat.HTML_ARCHIVE: HtmlArchiveRenderer(),
        }

    def render(self, session: ExportSession, export_format) -> Artifact:
        """
        Render session in the given format.

        The format is validated before the session is sealed, so an
        unsupported format leaves the session open and produces nothing.

        Raises
        ------
        UnsupportedFormatError
            If export_format is not a known format
        """
        fmt = ExportFormat.parse(export_format)
        session.seal()
        artifact = self.renderers[fmt].render(session, self.now())
        logger.info(
            "Rendered %s export %s (%d bytes)", fmt.value, artifact.filename, len(artifact.payload)
        )
        return artifact


__all__ = [
    "BaseRenderer",
    "ExportFormat",
    "ExportRenderer",
    "HtmlArchiveRenderer",
    "HtmlRenderer",
    "JsonArchiveRenderer",
    "JsonRenderer",
    "MarkdownArchiveRenderer",
    "MarkdownRenderer",
]
