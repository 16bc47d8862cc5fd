"""
Source schema models for the ChatGPT backend API.

These Pydantic models represent the raw payloads before extraction into
domain models.
"""

from .chatgpt import (
    NULL_PARENT_ID,
    AuthorRole,
    ChatGPTAuthor,
    ChatGPTContent,
    ChatGPTConversation,
    ChatGPTMessage,
    ChatGPTNode,
    ConversationListItem,
    ConversationListPage,
    FileDownloadInfo,
)

__all__ = [
    "NULL_PARENT_ID",
    "AuthorRole",
    "ChatGPTAuthor",
    "ChatGPTContent",
    "ChatGPTConversation",
    "ChatGPTMessage",
    "ChatGPTNode",
    "ConversationListItem",
    "ConversationListPage",
    "FileDownloadInfo",
]
