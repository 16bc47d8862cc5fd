"""
Domain models for conversation export.

These models represent extracted conversations, messages and assets
independent of the backend API's payload format. The to_dict() methods
produce the camelCase shape of the JSON export.

All models use Pydantic for validation, serialization, and type safety.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from .errors import SessionSealedError
from .utils import format_timestamp, safe_filename


class AssetKind(str, Enum):
    """Whether an asset is rendered as an image or a downloadable file."""

    FILE = "file"
    IMAGE = "image"


class AssetSource(str, Enum):
    """Where in a message the asset reference was found."""

    ATTACHMENT = "attachment"
    POINTER = "pointer"
    GENERATED = "generated"
    CODE_OUTPUT = "code_output"
    CITATION = "citation"


class Asset(BaseModel):
    """
    A binary attachment referenced by a message.

    payload is None when the download failed or was disabled; the asset is
    then a reference only and is still listed by every export format.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    name: str = ""
    size: Optional[int] = None
    mime_type: Optional[str] = None
    kind: AssetKind = AssetKind.FILE
    source: AssetSource = AssetSource.ATTACHMENT
    payload: Optional[bytes] = None

    @property
    def has_payload(self) -> bool:
        return self.payload is not None

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def relative_path(self) -> str:
        """Path of the payload relative to its conversation's directory."""
        folder = "images" if self.kind == AssetKind.IMAGE else "files"
        name = safe_filename(self.name, fallback=self.id)
        return f"{folder}/{safe_filename(self.id)}/{name}"

    def archive_path(self, conversation_id: str) -> str:
        """Path of the payload inside export archives."""
        return f"{safe_filename(conversation_id)}/{self.relative_path()}"

    def to_reference(self) -> Dict[str, Any]:
        """Reference metadata only; the payload is never serialized."""
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "mimeType": self.mime_type,
            "source": self.source.value,
            "downloaded": self.has_payload,
        }


class ContentPart(BaseModel):
    """One rendered part of a message: literal text or an asset reference."""

    type: str = "text"  # "text" or "asset"
    text: str = ""
    asset_id: Optional[str] = None
    asset_kind: Optional[AssetKind] = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.type == "asset":
            return {
                "type": "asset",
                "assetId": self.asset_id,
                "kind": self.asset_kind.value if self.asset_kind else None,
                "name": self.name,
            }
        return {"type": "text", "text": self.text}


class Citation(BaseModel):
    """A citation pointing at an uploaded file."""

    message_id: str
    file_id: str
    title: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messageId": self.message_id,
            "fileId": self.file_id,
            "title": self.title,
            "start": self.start,
            "end": self.end,
        }


class CodeOutput(BaseModel):
    """Result of a code-interpreter run attached to a message."""

    message_id: str
    code: str = ""
    language: Optional[str] = None
    status: Optional[str] = None
    output: str = ""
    file_ids: List[str] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messageId": self.message_id,
            "code": self.code,
            "language": self.language,
            "status": self.status,
            "output": self.output,
            "files": list(self.file_ids),
        }


class DocumentRevision(BaseModel):
    """One version of a long-form document."""

    version: Optional[int] = None
    content: str = ""
    message_id: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "content": self.content,
            "messageId": self.message_id,
            "createTime": format_timestamp(self.created_at),
        }


class LongFormDocument(BaseModel):
    """
    A long-form (canvas) document with its revision history.

    content is always the content of the last revision.
    """

    id: str
    title: str = ""
    doc_type: Optional[str] = None
    content: str = ""
    revisions: List[DocumentRevision] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.doc_type,
            "content": self.content,
            "revisions": [r.to_dict() for r in self.revisions],
        }


class ProcessedMessage(BaseModel):
    """
    A message after content classification.

    parent_id is the node's declared parent, which may be a placeholder node
    that produced no message of its own.
    """

    id: str
    parent_id: Optional[str] = None
    role: str = "assistant"
    author_name: Optional[str] = None
    content_type: str = "text"
    text: str = ""
    parts: List[ContentPart] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    status: Optional[str] = None
    model: Optional[str] = None
    hidden: bool = False
    file_ids: List[str] = Field(default_factory=list)
    image_ids: List[str] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parentId": self.parent_id,
            "role": self.role,
            "authorName": self.author_name,
            "contentType": self.content_type,
            "text": self.text,
            "parts": [p.to_dict() for p in self.parts],
            "createTime": format_timestamp(self.created_at),
            "updateTime": format_timestamp(self.updated_at),
            "status": self.status,
            "model": self.model,
            "hidden": self.hidden,
            "files": list(self.file_ids),
            "images": list(self.image_ids),
            "citations": [c.to_dict() for c in self.citations],
            "metadata": self.metadata,
        }


class ExtractedConversation(BaseModel):
    """
    One conversation's complete extraction.

    messages are in traversal order, not chronological order.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    title: str = "Untitled"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model: Optional[str] = None
    current_node: Optional[str] = None
    messages: List[ProcessedMessage] = Field(default_factory=list)
    files: Dict[str, Asset] = Field(default_factory=dict)
    images: Dict[str, Asset] = Field(default_factory=dict)
    code_outputs: List[CodeOutput] = Field(default_factory=list)
    documents: List[LongFormDocument] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """JSON export shape; assets reduced to reference metadata."""
        return {
            "id": self.id,
            "title": self.title,
            "createTime": format_timestamp(self.created_at),
            "updateTime": format_timestamp(self.updated_at),
            "model": self.model,
            "currentNode": self.current_node,
            "messages": [m.to_dict() for m in self.messages],
            "codeOutputs": [c.to_dict() for c in self.code_outputs],
            "documents": [d.to_dict() for d in self.documents],
            "files": [a.to_reference() for a in self.files.values()],
            "images": [a.to_reference() for a in self.images.values()],
        }


class ExportStats(BaseModel):
    """Aggregate counts over an export session."""

    total_conversations: int = 0
    total_messages: int = 0
    total_files: int = 0
    total_images: int = 0
    failed_conversations: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalConversations": self.total_conversations,
            "totalMessages": self.total_messages,
            "totalFiles": self.total_files,
            "totalImages": self.total_images,
            "failedConversations": self.failed_conversations,
        }


class SessionError(BaseModel):
    """A conversation that could not be extracted."""

    conversation_id: str
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "conversationId": self.conversation_id,
            "errorType": self.error_type,
            "message": self.message,
        }


class ExportSession(BaseModel):
    """
    State of one export run.

    Populated during extraction, sealed when rendering starts. Any mutation
    after seal() raises SessionSealedError.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    conversations: Dict[str, ExtractedConversation] = Field(default_factory=dict)
    errors: List[SessionError] = Field(default_factory=list)

    _sealed: bool = PrivateAttr(default=False)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        self._sealed = True

    def _check_open(self) -> None:
        if self._sealed:
            raise SessionSealedError(f"Export session {self.id} is sealed")

    def add_conversation(self, conversation: ExtractedConversation) -> None:
        self._check_open()
        self.conversations[conversation.id] = conversation

    def add_error(self, conversation_id: str, error: BaseException) -> None:
        self._check_open()
        self.errors.append(
            SessionError(
                conversation_id=conversation_id,
                error_type=type(error).__name__,
                message=str(error),
            )
        )

    @property
    def stats(self) -> ExportStats:
        conversations = self.conversations.values()
        return ExportStats(
            total_conversations=len(self.conversations),
            total_messages=sum(len(c.messages) for c in conversations),
            total_files=sum(len(c.files) for c in conversations),
            total_images=sum(len(c.images) for c in conversations),
            failed_conversations=len(self.errors),
        )


class ConversationSummary(BaseModel):
    """Conversation list entry."""

    id: str
    title: str = "Untitled"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_archived: bool = False


@dataclass(frozen=True)
class ListProgress:
    """Conversation-list pagination progress."""

    fetched: int
    total: Optional[int]


@dataclass(frozen=True)
class TraversalProgress:
    """Per-conversation node traversal progress."""

    processed: int
    total: int


@dataclass(frozen=True)
class ConversationProgress:
    """Batch progress forwarded to the caller during an export run."""

    index: int
    total: int
    conversation_id: str
    processed: int = 0
    node_total: int = 0


@dataclass(frozen=True)
class Artifact:
    """Rendered export payload and its suggested file name."""

    filename: str
    media_type: str
    payload: bytes

    def save(self, directory: Path) -> Path:
        """Write the payload into directory and return the file path."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.filename
        path.write_bytes(self.payload)
        return path


@dataclass
class ExportResult:
    """Outcome of an export run returned to the caller."""

    successful: List[str]
    failed: List[str]
    session: ExportSession
    artifact: Optional[Artifact] = None


@dataclass(frozen=True)
class MutationResult:
    """Outcome of one archive/delete call."""

    conversation_id: str
    ok: bool
    error: Optional[str] = None

