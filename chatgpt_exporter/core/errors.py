"""
Exception taxonomy for the export pipeline.

Fatal to the whole export: AuthExpiredError, UnsupportedFormatError, Cancelled.
Fatal to one conversation: NetworkError (wrapped in ExtractionError).
Always recovered locally: AssetUnavailable.
"""

from typing import Optional


class ExporterError(Exception):
    """Base class for all exporter errors."""


class CredentialError(ExporterError):
    """Raised by a credential supplier that cannot produce a token."""


class AuthExpiredError(ExporterError):
    """The API rejected the credential and no fresh token could be obtained."""


class NetworkError(ExporterError):
    """
    A request failed after exhausting its retry budget.

    Attributes
    ----------
    url : str
        URL of the failed request
    status_code : int, optional
        Last HTTP status observed, None for transport errors
    cause : Exception, optional
        Last transport exception observed
    """

    def __init__(
        self,
        message: str,
        url: str = "",
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class AssetUnavailable(ExporterError):
    """A single asset could not be downloaded."""

    def __init__(self, asset_id: str, reason: str):
        super().__init__(f"Asset {asset_id} unavailable: {reason}")
        self.asset_id = asset_id
        self.reason = reason


class ExtractionError(ExporterError):
    """Extraction of one conversation failed on an unrecoverable request."""

    def __init__(self, conversation_id: str, cause: BaseException):
        super().__init__(f"Failed to extract conversation {conversation_id}: {cause}")
        self.conversation_id = conversation_id
        self.cause = cause


class UnsupportedFormatError(ExporterError):
    """Requested export format is not one of the known formats."""

    def __init__(self, value: str):
        super().__init__(f"Unsupported export format: {value!r}")
        self.value = value


class Cancelled(ExporterError):
    """The cancellation token was set at a suspension point."""


class ExportCancelled(Cancelled):
    """
    An export run was cancelled between or during conversations.

    The partially built session is consistent: it holds every conversation
    that finished before cancellation and nothing from the interrupted one.
    """

    def __init__(self, session):
        super().__init__(
            f"Export cancelled after {len(session.conversations)} conversations"
        )
        self.session = session


class SessionSealedError(ExporterError):
    """An export session was modified after rendering started."""
