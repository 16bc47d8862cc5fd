"""
Pydantic models for ChatGPT backend API payloads.

These models represent the conversation list, conversation detail and file
download responses of the backend API, before extraction into domain models.
Uses hybrid validation: strict for the fields traversal depends on (ids,
parent/children links), lenient for everything else (extra="allow").
"""

from enum import StrEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Parent id some payloads use for the synthetic root node.
NULL_PARENT_ID = "00000000-0000-4000-8000-000000000000"


class AuthorRole(StrEnum):
    """Author role in ChatGPT messages."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class ChatGPTAuthor(BaseModel):
    """Author information for a ChatGPT message."""

    model_config = ConfigDict(extra="allow")

    role: str = Field("assistant", description="Author role: user, assistant, system or tool")
    name: Optional[str] = Field(None, description="Tool name for tool messages")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Author metadata")


class ChatGPTContent(BaseModel):
    """Content object for a ChatGPT message."""

    model_config = ConfigDict(extra="allow")

    content_type: str = Field("text", description="text, multimodal_text, code, ...")
    parts: Optional[List[Any]] = Field(
        None, description="Content parts (strings or asset pointer objects)"
    )
    text: Optional[str] = Field(None, description="Body of code/execution_output content")
    language: Optional[str] = Field(None, description="Language of code content")


class ChatGPTMessage(BaseModel):
    """Message object within a ChatGPT node."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Message UUID (usually same as node ID)")
    author: ChatGPTAuthor = Field(default_factory=ChatGPTAuthor)
    create_time: Optional[Any] = Field(None, description="Epoch float or ISO string")
    update_time: Optional[Any] = Field(None, description="Epoch float or ISO string")
    content: ChatGPTContent = Field(default_factory=ChatGPTContent)
    status: Optional[str] = Field(None, description="e.g. 'finished_successfully'")
    end_turn: Optional[bool] = None
    weight: Optional[float] = Field(None, description="Branch weight")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    recipient: Optional[str] = Field(None, description="Recipient (usually 'all')")
    channel: Optional[str] = None


class ChatGPTNode(BaseModel):
    """
    Node in ChatGPT's message mapping.

    A node without a message is a structural placeholder (e.g. the root)
    that still has to be traversed for its children.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Node UUID (same as the mapping key)")
    parent: Optional[str] = Field(None, description="Parent node ID (null for roots)")
    children: List[str] = Field(default_factory=list, description="Child node IDs")
    message: Optional[ChatGPTMessage] = None


class ChatGPTConversation(BaseModel):
    """
    Conversation detail returned by GET conversation/{id}.

    The mapping holds every node, including edited and abandoned branches.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(None, description="Conversation id")
    conversation_id: Optional[str] = Field(None, description="Same as id")
    title: Optional[str] = None
    create_time: Optional[Any] = Field(None, description="Epoch float or ISO string")
    update_time: Optional[Any] = Field(None, description="Epoch float or ISO string")
    current_node: Optional[str] = Field(None, description="Latest leaf node id")
    mapping: Dict[str, ChatGPTNode] = Field(default_factory=dict)
    default_model_slug: Optional[str] = None
    model: Optional[str] = None
    is_archived: Optional[bool] = None
    gizmo_id: Optional[str] = None

    @property
    def resolved_id(self) -> Optional[str]:
        return self.id or self.conversation_id

    @property
    def model_slug(self) -> Optional[str]:
        return self.model or self.default_model_slug


class ConversationListItem(BaseModel):
    """Summary entry of GET conversations."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: Optional[str] = None
    create_time: Optional[Any] = None
    update_time: Optional[Any] = None
    is_archived: Optional[bool] = None
    gizmo_id: Optional[str] = None


class ConversationListPage(BaseModel):
    """One page of GET conversations?offset=&limit=."""

    model_config = ConfigDict(extra="allow")

    items: List[ConversationListItem] = Field(default_factory=list)
    total: Optional[int] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    has_missing_conversations: Optional[bool] = None


class FileDownloadInfo(BaseModel):
    """Response of GET files/{id}/download."""

    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    download_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size_bytes: Optional[int] = None
    mime_type: Optional[str] = None
    error_code: Optional[str] = None
