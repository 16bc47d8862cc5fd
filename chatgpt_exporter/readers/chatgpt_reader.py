"""
Reader for ChatGPT conversations.

Fetches conversations, file payloads and applies conversation mutations
through ChatGPT's internal backend API. All calls go through a shared
RateLimitedRequester.
"""

import logging
from typing import Callable, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from chatgpt_exporter.core.errors import AssetUnavailable
from chatgpt_exporter.core.models import ListProgress
from chatgpt_exporter.core.source_schemas import (
    ChatGPTConversation,
    ConversationListItem,
    ConversationListPage,
    FileDownloadInfo,
)

from .requester import RateLimitedRequester, RequestOptions

logger = logging.getLogger(__name__)


class ChatGPTReader:
    """
    Client for the ChatGPT backend API.

    Parameters
    ----
    requester : RateLimitedRequester
        Shared requester carrying pacing, retries and credentials
    """

    def __init__(self, requester: RateLimitedRequester):
        self.requester = requester

    @property
    def api_base_url(self) -> str:
        """Base URL for ChatGPT API."""
        return self.requester.api_base_url

    def fetch_conversation_list(
        self,
        on_progress: Optional[Callable[[ListProgress], None]] = None,
        include_archived: bool = False,
        max_conversations: Optional[int] = None,
    ) -> List[ConversationListItem]:
        """
        Fetch conversation summaries with offset/limit pagination.

        Parameters
        ----
        on_progress : callable, optional
            Called with ListProgress(fetched, total) after every page
        include_archived : bool
            List archived conversations instead of active ones
        max_conversations : int, optional
            Stop after this many conversations (falls back to the config cap,
            None means uncapped)

        Returns
        ----
        List[ConversationListItem]
            Conversation summaries, most recently updated first
        """
        cap = max_conversations or self.requester.config.max_conversations
        page_size = self.requester.config.page_size
        conversations: List[ConversationListItem] = []
        offset = 0
        reported_total: Optional[int] = None

        while True:
            limit = page_size if cap is None else min(page_size, cap - offset)
            if limit <= 0:
                logger.info("Reached conversation cap (%d)", cap)
                break

            params = {"offset": offset, "limit": limit, "order": "updated"}
            if include_archived:
                params["is_archived"] = "true"

            logger.debug("Requesting conversations offset=%d limit=%d", offset, limit)
            response = self.requester.execute("conversations", RequestOptions(params=params))
            page = ConversationListPage.model_validate(response.json())

            if not page.items:
                break

            conversations.extend(page.items)
            offset += len(page.items)
            reported_total = page.total

            total = page.total
            if cap is not None and total is not None:
                total = min(total, cap)
            if on_progress:
                on_progress(ListProgress(fetched=len(conversations), total=total))

            if total is not None and offset >= total:
                break
            if len(page.items) < limit:
                break

        if reported_total and len(conversations) < min(reported_total, cap or reported_total):
            logger.warning(
                "API reported %d conversations but only returned %d",
                reported_total,
                len(conversations),
            )

        logger.info("Listed %d conversations", len(conversations))
        return conversations

    def fetch_conversation_detail(self, conv_id: str) -> ChatGPTConversation:
        """
        Fetch the full conversation including its message mapping.

        Raises
        ----
        NetworkError
            If the request fails after retries
        pydantic.ValidationError
            If the payload does not look like a conversation
        """
        response = self.requester.execute(f"conversation/{conv_id}")
        conversation = ChatGPTConversation.model_validate(response.json())
        if not conversation.resolved_id:
            conversation.id = conv_id
        return conversation

    def download_file(self, file_id: str) -> Tuple[bytes, FileDownloadInfo]:
        """
        Download a file's payload by its file-service id.

        The download endpoint answers with a signed download_url; some
        deployments stream the bytes directly instead.

        Raises
        ----
        AssetUnavailable
            If the service reports the file as unavailable
        NetworkError
            If either request fails after retries
        """
        response = self.requester.execute(f"files/{file_id}/download")
        content_type = response.headers.get("Content-Type", "")
        if "json" not in content_type:
            return response.content, FileDownloadInfo(mime_type=content_type or None)

        info = FileDownloadInfo.model_validate(response.json())
        if not info.download_url:
            raise AssetUnavailable(
                file_id, info.error_code or info.status or "no download_url in response"
            )
        return self.download_url(info.download_url), info

    def download_url(self, url: str) -> bytes:
        """
        Fetch raw bytes from a URL.

        Relative URLs and URLs on the API host are fetched with the bearer
        token; anything else (signed storage URLs, generated images) without.
        """
        api = urlparse(self.api_base_url)
        absolute = urljoin(f"{api.scheme}://{api.netloc}/", url)
        authenticated = urlparse(absolute).netloc == api.netloc
        response = self.requester.execute(
            absolute, RequestOptions(authenticated=authenticated, headers={"Accept": "*/*"})
        )
        return response.content

    def archive_conversation(self, conv_id: str) -> None:
        """Set the archived flag on a conversation."""
        self.requester.execute(
            f"conversation/{conv_id}",
            RequestOptions(method="PATCH", json={"is_archived": True}),
        )

    def delete_conversation(self, conv_id: str) -> None:
        """Remove a conversation (the service hides it via is_visible=false)."""
        self.requester.execute(
            f"conversation/{conv_id}",
            RequestOptions(method="PATCH", json={"is_visible": False}),
        )
