"""
Archive and delete conversations.

Each id is handled independently: a failure is recorded and the next id is
processed. Only an expired credential or cancellation stops the batch.
"""

import logging
from typing import Callable, List, Optional, Sequence

from chatgpt_exporter.core.cancellation import CancellationToken
from chatgpt_exporter.core.errors import NetworkError
from chatgpt_exporter.core.models import MutationResult
from chatgpt_exporter.readers.chatgpt_reader import ChatGPTReader

logger = logging.getLogger(__name__)


class ConversationManager:
    """Per-id conversation mutations."""

    def __init__(self, reader: ChatGPTReader):
        self.reader = reader

    def archive(
        self,
        conversation_ids: Sequence[str],
        cancel: Optional[CancellationToken] = None,
    ) -> List[MutationResult]:
        """Archive each conversation; returns one result per id."""
        return self._apply("archive", self.reader.archive_conversation, conversation_ids, cancel)

    def delete(
        self,
        conversation_ids: Sequence[str],
        cancel: Optional[CancellationToken] = None,
    ) -> List[MutationResult]:
        """Delete each conversation; returns one result per id."""
        return self._apply("delete", self.reader.delete_conversation, conversation_ids, cancel)

    def _apply(
        self,
        action: str,
        call: Callable[[str], None],
        conversation_ids: Sequence[str],
        cancel: Optional[CancellationToken],
    ) -> List[MutationResult]:
        if cancel is not None:
            self.reader.requester.bind_cancellation(cancel)

        results: List[MutationResult] = []
        for conversation_id in conversation_ids:
            if cancel is not None:
                cancel.raise_if_cancelled()
            try:
                call(conversation_id)
            except NetworkError as e:
                logger.warning("Failed to %s conversation %s: %s", action, conversation_id, e)
                results.append(MutationResult(conversation_id, ok=False, error=str(e)))
                continue
            logger.info("%s: %s", action.capitalize(), conversation_id)
            results.append(MutationResult(conversation_id, ok=True))

        failed = sum(1 for r in results if not r.ok)
        logger.info("%s finished: %d succeeded, %d failed", action, len(results) - failed, failed)
        return results
