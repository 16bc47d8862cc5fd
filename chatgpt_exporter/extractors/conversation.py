"""
Conversation extractor.

Fetches one conversation's detail, traverses its message mapping once per
node and folds the per-message content into an ExtractedConversation.
"""

import logging
from typing import Callable, Dict, Optional

from chatgpt_exporter.core.errors import (
    AuthExpiredError,
    Cancelled,
    ExtractionError,
    NetworkError,
)
from chatgpt_exporter.core.models import (
    ExtractedConversation,
    LongFormDocument,
    TraversalProgress,
)
from chatgpt_exporter.core.utils import parse_timestamp
from chatgpt_exporter.readers.chatgpt_reader import ChatGPTReader

from .assets import AssetFetcher
from .content import DocumentUpdate, MessageContentExtractor
from .tree import traverse_mapping

logger = logging.getLogger(__name__)


class ConversationExtractor:
    """
    Extract complete conversations from the ChatGPT backend API.

    Attributes
    ----------
    reader : ChatGPTReader
        API client used for the conversation detail request
    fetcher : AssetFetcher
        Shared asset cache for the export run

    Examples
    --------
    >>> extractor = ConversationExtractor(reader, AssetFetcher(reader))
    >>> conversation = extractor.extract("6790c1f2-...")
    >>> print(f"{conversation.title}: {len(conversation.messages)} messages")
    """

    def __init__(self, reader: ChatGPTReader, fetcher: AssetFetcher):
        self.reader = reader
        self.fetcher = fetcher
        self.content = MessageContentExtractor(fetcher)

    def extract(
        self,
        conversation_id: str,
        on_progress: Optional[Callable[[TraversalProgress], None]] = None,
    ) -> ExtractedConversation:
        """
        Extract one conversation.

        Parameters
        ----------
        conversation_id : str
            Conversation id
        on_progress : callable, optional
            Called with TraversalProgress(processed, total) after every node

        Returns
        -------
        ExtractedConversation
            Messages in traversal order plus assets, code outputs and documents

        Raises
        ------
        ExtractionError
            If the conversation detail cannot be fetched or parsed, or one of
            its messages cannot be processed
        AuthExpiredError
            If the credential expired (not wrapped: fatal for the whole export)
        """
        try:
            detail = self.reader.fetch_conversation_detail(conversation_id)
        except (NetworkError, ValueError) as e:
            logger.error("Error fetching conversation %s: %s", conversation_id, e)
            raise ExtractionError(conversation_id, e) from e

        mapping = detail.mapping
        traversal = traverse_mapping(mapping, detail.current_node)
        logger.debug(
            "Conversation %s: %d of %d nodes reachable",
            conversation_id,
            traversal.visited,
            traversal.total,
        )

        conversation = ExtractedConversation(
            id=detail.resolved_id or conversation_id,
            title=detail.title or "Untitled",
            created_at=parse_timestamp(detail.create_time),
            updated_at=parse_timestamp(detail.update_time),
            model=detail.model_slug,
            current_node=detail.current_node,
        )
        documents: Dict[str, LongFormDocument] = {}

        for processed, node_id in enumerate(traversal.order, start=1):
            node = mapping[node_id]
            if node.message is not None:
                try:
                    result = self.content.process(node_id, node.parent, node.message)
                except (AuthExpiredError, Cancelled):
                    raise
                except Exception as e:
                    logger.error(
                        "Error processing message %s of conversation %s: %s",
                        node_id,
                        conversation_id,
                        e,
                    )
                    raise ExtractionError(conversation_id, e) from e
                conversation.messages.append(result.message)
                conversation.files.update(result.files)
                conversation.images.update(result.images)
                conversation.code_outputs.extend(result.code_outputs)
                for update in result.documents:
                    self._merge_document(documents, update)

            if on_progress:
                on_progress(TraversalProgress(processed=processed, total=traversal.total))

        for asset_id in conversation.images:
            conversation.files.pop(asset_id, None)
        conversation.documents = list(documents.values())
        if conversation.model is None:
            conversation.model = next(
                (m.model for m in reversed(conversation.messages) if m.model), None
            )

        logger.info(
            "Extracted conversation %s: %d messages, %d files, %d images",
            conversation.id,
            len(conversation.messages),
            len(conversation.files),
            len(conversation.images),
        )
        return conversation

    @staticmethod
    def _merge_document(documents: Dict[str, LongFormDocument], update: DocumentUpdate) -> None:
        document = documents.get(update.document_id)
        if document is None:
            document = LongFormDocument(id=update.document_id)
            documents[update.document_id] = document

        if update.title:
            document.title = update.title
        if update.doc_type:
            document.doc_type = update.doc_type

        seen = {(r.version, r.content) for r in document.revisions}
        for revision in update.revisions:
            if (revision.version, revision.content) not in seen:
                document.revisions.append(revision)
                seen.add((revision.version, revision.content))
        if document.revisions:
            document.content = document.revisions[-1].content
