"""
Export ChatGPT conversations through the backend API.

Conversations are extracted one at a time through a shared rate-limited
requester, their message trees rebuilt (branches included) and rendered as
JSON, or as ZIP archives of JSON, Markdown or HTML plus downloaded assets.
"""

from chatgpt_exporter.core.cancellation import CancellationToken
from chatgpt_exporter.core.config import ExporterConfig
from chatgpt_exporter.core.errors import (
    AssetUnavailable,
    AuthExpiredError,
    Cancelled,
    ExportCancelled,
    ExporterError,
    NetworkError,
    UnsupportedFormatError,
)
from chatgpt_exporter.readers import ChatGPTReader, RateLimitedRequester, ResolvedCredentialSupplier
from chatgpt_exporter.renderers import ExportFormat, ExportRenderer
from chatgpt_exporter.services import ConversationExporter, ConversationManager

__version__ = "0.3.0"

__all__ = [
    "AssetUnavailable",
    "AuthExpiredError",
    "CancellationToken",
    "Cancelled",
    "ChatGPTReader",
    "ConversationExporter",
    "ConversationManager",
    "ExportCancelled",
    "ExportFormat",
    "ExportRenderer",
    "ExporterConfig",
    "ExporterError",
    "NetworkError",
    "RateLimitedRequester",
    "ResolvedCredentialSupplier",
    "UnsupportedFormatError",
]
