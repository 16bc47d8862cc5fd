"""
Export orchestration.

Runs ConversationExtractor over a list of conversation ids strictly one at
a time (all requests share one RateLimitedRequester), collects the results
into an ExportSession and hands the sealed session to ExportRenderer.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from chatgpt_exporter.core.cancellation import CancellationToken
from chatgpt_exporter.core.errors import Cancelled, ExportCancelled, ExtractionError
from chatgpt_exporter.core.models import (
    ConversationProgress,
    ConversationSummary,
    ExportResult,
    ExportSession,
    ListProgress,
    TraversalProgress,
)
from chatgpt_exporter.core.utils import parse_timestamp
from chatgpt_exporter.extractors import AssetFetcher, ConversationExtractor
from chatgpt_exporter.readers.chatgpt_reader import ChatGPTReader
from chatgpt_exporter.renderers import ExportFormat, ExportRenderer

logger = logging.getLogger(__name__)


def new_session_id(now: Optional[datetime] = None) -> str:
    """Session id used for artifact names, e.g. 20250101T120000Z."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%dT%H%M%SZ")


class ConversationExporter:
    """
    Export ChatGPT conversations.

    Parameters
    ----
    reader : ChatGPTReader
        API client shared by listing, extraction and asset downloads
    renderer : ExportRenderer, optional
        Renderer used by export(); a default one is created if omitted
    """

    def __init__(self, reader: ChatGPTReader, renderer: Optional[ExportRenderer] = None):
        self.reader = reader
        self.renderer = renderer or ExportRenderer()

    @property
    def config(self):
        return self.reader.requester.config

    def list_conversations(
        self,
        on_progress: Optional[Callable[[ListProgress], None]] = None,
        include_archived: bool = False,
        max_conversations: Optional[int] = None,
    ) -> List[ConversationSummary]:
        """
        List conversations, most recently updated first.

        Parameters
        ----
        on_progress : callable, optional
            Called with ListProgress(fetched, total) after every page
        include_archived : bool
            List archived conversations instead of active ones
        max_conversations : int, optional
            Cap for this call; defaults to the configured cap

        Returns
        ----
        List[ConversationSummary]
            One summary per listed conversation
        """
        items = self.reader.fetch_conversation_list(
            on_progress=on_progress,
            include_archived=include_archived,
            max_conversations=max_conversations,
        )
        return [
            ConversationSummary(
                id=item.id,
                title=item.title or "Untitled",
                created_at=parse_timestamp(item.create_time),
                updated_at=parse_timestamp(item.update_time),
                is_archived=bool(item.is_archived),
            )
            for item in items
        ]

    def run(
        self,
        conversation_ids: Sequence[str],
        on_progress: Optional[Callable[[ConversationProgress], None]] = None,
        cancel: Optional[CancellationToken] = None,
        download_assets: Optional[bool] = None,
        session_id: Optional[str] = None,
    ) -> ExportSession:
        """
        Extract every conversation into a fresh ExportSession.

        A conversation whose extraction fails is recorded in session.errors
        and the run continues with the next one.

        Parameters
        ----
        conversation_ids : Sequence[str]
            Conversations to extract, in order
        on_progress : callable, optional
            Called with ConversationProgress when a conversation starts and
            after every traversed node
        cancel : CancellationToken, optional
            Checked between conversations and at every request and sleep
        download_assets : bool, optional
            Overrides the configured download_assets setting
        session_id : str, optional
            Explicit session id (defaults to the start timestamp)

        Returns
        ----
        ExportSession
            Populated, unsealed session

        Raises
        ----
        AuthExpiredError
            The credential expired; nothing more can be fetched
        ExportCancelled
            The token was cancelled; carries the partial session
        """
        cancel = cancel or CancellationToken()
        self.reader.requester.bind_cancellation(cancel)

        if download_assets is None:
            download_assets = self.config.download_assets
        fetcher = AssetFetcher(self.reader, download=download_assets)
        extractor = ConversationExtractor(self.reader, fetcher)

        started_at = datetime.now(timezone.utc)
        session = ExportSession(id=session_id or new_session_id(started_at), started_at=started_at)
        total = len(conversation_ids)
        logger.info("Starting export %s of %d conversations", session.id, total)

        try:
            for index, conversation_id in enumerate(conversation_ids, start=1):
                cancel.raise_if_cancelled()
                forward = None
                if on_progress:
                    on_progress(ConversationProgress(index, total, conversation_id))
                    forward = self._forwarder(on_progress, index, total, conversation_id)

                try:
                    conversation = extractor.extract(conversation_id, on_progress=forward)
                except ExtractionError as e:
                    logger.warning("Skipping conversation %s: %s", conversation_id, e.cause)
                    session.add_error(conversation_id, e.cause)
                    continue
                session.add_conversation(conversation)
        except Cancelled as e:
            logger.warning(
                "Export %s cancelled after %d of %d conversations",
                session.id,
                len(session.conversations),
                total,
            )
            raise ExportCancelled(session) from e

        stats = session.stats
        logger.info(
            "Export %s finished: %d succeeded, %d failed, %d downloads",
            session.id,
            stats.total_conversations,
            stats.failed_conversations,
            fetcher.download_count,
        )
        return session

    @staticmethod
    def _forwarder(
        on_progress: Callable[[ConversationProgress], None],
        index: int,
        total: int,
        conversation_id: str,
    ) -> Callable[[TraversalProgress], None]:
        def forward(progress: TraversalProgress) -> None:
            on_progress(
                ConversationProgress(
                    index=index,
                    total=total,
                    conversation_id=conversation_id,
                    processed=progress.processed,
                    node_total=progress.total,
                )
            )

        return forward

    def export(
        self,
        conversation_ids: Sequence[str],
        export_format="json",
        on_progress: Optional[Callable[[ConversationProgress], None]] = None,
        cancel: Optional[CancellationToken] = None,
        download_assets: Optional[bool] = None,
    ) -> ExportResult:
        """
        Run an export and render its artifact.

        The format is validated before any request is made.

        Raises
        ----
        UnsupportedFormatError
            If export_format is unknown
        AuthExpiredError
            The credential expired
        ExportCancelled
            The token was cancelled
        """
        fmt = ExportFormat.parse(export_format)
        session = self.run(
            conversation_ids,
            on_progress=on_progress,
            cancel=cancel,
            download_assets=download_assets,
        )
        artifact = self.renderer.render(session, fmt)
        return ExportResult(
            successful=list(session.conversations),
            failed=[error.conversation_id for error in session.errors],
            session=session,
            artifact=artifact,
        )
