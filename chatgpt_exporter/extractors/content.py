"""
Content classification for single ChatGPT messages.

Turns one raw message into a ProcessedMessage plus the special payloads it
carries (assets, code-interpreter output, canvas revisions, file citations).
Asset downloads are delegated to the shared AssetFetcher.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chatgpt_exporter.core.models import (
    Asset,
    AssetKind,
    AssetSource,
    Citation,
    CodeOutput,
    ContentPart,
    DocumentRevision,
    ProcessedMessage,
)
from chatgpt_exporter.core.source_schemas import ChatGPTMessage
from chatgpt_exporter.core.utils import parse_timestamp

from .assets import AssetFetcher, AssetHint

logger = logging.getLogger(__name__)

POINTER_SCHEMES = ("file-service://", "sediment://")


@dataclass
class DocumentUpdate:
    """A canvas revision found on one message."""

    document_id: str
    title: str
    doc_type: Optional[str]
    revisions: List[DocumentRevision]


@dataclass
class ContentResult:
    """Everything extracted from one message."""

    message: ProcessedMessage
    files: Dict[str, Asset] = field(default_factory=dict)
    images: Dict[str, Asset] = field(default_factory=dict)
    code_outputs: List[CodeOutput] = field(default_factory=list)
    documents: List[DocumentUpdate] = field(default_factory=list)


def parse_asset_pointer(pointer: Optional[str]) -> Optional[str]:
    """file-service://file-abc -> file-abc"""
    if not pointer:
        return None
    for scheme in POINTER_SCHEMES:
        if pointer.startswith(scheme):
            return pointer[len(scheme):] or None
    return None


def classify_kind(mime_type: Optional[str], default: AssetKind = AssetKind.FILE) -> AssetKind:
    """Image if the declared media type is image/*, else default when unknown."""
    if mime_type:
        return AssetKind.IMAGE if mime_type.lower().startswith("image/") else AssetKind.FILE
    return default


class MessageContentExtractor:
    """
    Classify a message's content and resolve the assets it references.

    Parameters
    ----------
    fetcher : AssetFetcher
        Shared, memoizing asset downloader
    """

    def __init__(self, fetcher: AssetFetcher):
        self.fetcher = fetcher

    def process(
        self, node_id: str, parent_id: Optional[str], message: ChatGPTMessage
    ) -> ContentResult:
        """
        Process one message.

        Parameters
        ----------
        node_id : str
            Mapping key of the node carrying the message
        parent_id : str, optional
            Declared parent node id
        message : ChatGPTMessage
            Raw message payload

        Returns
        -------
        ContentResult
            Processed message and the payloads it carries
        """
        metadata = message.metadata or {}
        processed = ProcessedMessage(
            id=node_id,
            parent_id=parent_id,
            role=message.author.role,
            author_name=message.author.name,
            content_type=message.content.content_type,
            created_at=parse_timestamp(message.create_time),
            updated_at=parse_timestamp(message.update_time),
            status=message.status,
            model=metadata.get("model_slug"),
            hidden=bool(metadata.get("is_visually_hidden_from_conversation")),
            metadata=metadata,
        )
        result = ContentResult(message=processed)
        attachments = {
            a.get("id"): a for a in metadata.get("attachments") or [] if isinstance(a, dict)
        }

        processed.parts = self._extract_parts(message, attachments, result)
        processed.text = "\n".join(p.text for p in processed.parts if p.type == "text" and p.text)

        for attachment in attachments.values():
            self._add_attachment(attachment, result)

        aggregate = metadata.get("aggregate_result")
        if isinstance(aggregate, dict):
            result.code_outputs.append(self._extract_code_output(node_id, aggregate, result))

        canvas = metadata.get("canvas")
        if isinstance(canvas, dict) and canvas.get("textdoc_id"):
            result.documents.append(self._extract_document(node_id, message, canvas))

        for key in ("citations", "content_references"):
            references = metadata.get(key)
            if not isinstance(references, list):
                continue
            for reference in references:
                if isinstance(reference, dict):
                    self._add_citation(node_id, reference, result)

        return result

    def _extract_parts(
        self,
        message: ChatGPTMessage,
        attachments: Dict[str, Dict[str, Any]],
        result: ContentResult,
    ) -> List[ContentPart]:
        content = message.content
        extra = content.model_extra or {}
        content_type = content.content_type

        if content.parts is not None:
            parts = []
            for raw in content.parts:
                part = self._extract_part(raw, attachments, result)
                if part is not None:
                    parts.append(part)
            return parts

        if content_type == "thoughts":
            texts = [
                t.get("content") or t.get("summary") or ""
                for t in extra.get("thoughts") or []
                if isinstance(t, dict)
            ]
            return [ContentPart(text="\n\n".join(t for t in texts if t))]
        if content_type == "reasoning_recap":
            return [ContentPart(text=str(extra.get("content") or ""))]
        if content_type == "tether_browsing_display":
            return [ContentPart(text=str(extra.get("result") or extra.get("summary") or ""))]
        if content_type == "tether_quote":
            title = extra.get("title")
            quoted = content.text or ""
            return [ContentPart(text=f"{title}\n{quoted}" if title else quoted)]
        if content_type == "user_editable_context":
            texts = [extra.get("user_profile"), extra.get("user_instructions")]
            return [ContentPart(text="\n\n".join(t for t in texts if t))]

        # code, execution_output, system_error and unknown types carrying text
        if content.text is not None:
            return [ContentPart(text=content.text)]

        logger.debug("No text in content type %s of message %s", content_type, message.id)
        return []

    def _extract_part(
        self,
        raw: Any,
        attachments: Dict[str, Dict[str, Any]],
        result: ContentResult,
    ) -> Optional[ContentPart]:
        if isinstance(raw, str):
            return ContentPart(text=raw)
        if not isinstance(raw, dict):
            return ContentPart(text=str(raw)) if raw is not None else None

        part_type = raw.get("content_type") or ""
        if part_type == "audio_transcription" or (
            "text" in raw and not part_type.endswith("asset_pointer")
        ):
            return ContentPart(text=str(raw.get("text") or ""))

        if part_type.endswith("asset_pointer") or raw.get("url") or raw.get("image_url"):
            asset = self._resolve_pointer(raw, attachments, result)
            if asset is None:
                return None
            return ContentPart(
                type="asset", asset_id=asset.id, asset_kind=asset.kind, name=asset.display_name
            )

        logger.debug("Ignoring content part of type %r", part_type)
        return None

    def _resolve_pointer(
        self,
        raw: Dict[str, Any],
        attachments: Dict[str, Dict[str, Any]],
        result: ContentResult,
    ) -> Optional[Asset]:
        part_type = raw.get("content_type") or ""
        part_meta = raw.get("metadata") or {}
        url = raw.get("url") or raw.get("image_url")
        asset_id = parse_asset_pointer(raw.get("asset_pointer"))
        if asset_id is None and url:
            if parse_asset_pointer(url):
                asset_id, url = parse_asset_pointer(url), None
            else:
                asset_id = "generated-" + hashlib.sha1(url.encode("utf-8")).hexdigest()[:16]
        if asset_id is None:
            logger.debug("Asset pointer part without id: %s", part_type)
            return None

        generated = bool(part_meta.get("dalle") or part_meta.get("generation")) or url is not None
        attachment = attachments.get(asset_id) or {}
        mime_type = raw.get("mime_type") or part_meta.get("mime_type") or attachment.get("mime_type")
        default_kind = AssetKind.IMAGE if part_type.startswith("image") or generated else AssetKind.FILE
        kind = classify_kind(mime_type, default_kind)

        hint = AssetHint(
            name=attachment.get("name") or "",
            size=raw.get("size_bytes") if raw.get("size_bytes") is not None else attachment.get("size"),
            mime_type=mime_type,
            kind=kind,
            source=AssetSource.GENERATED if generated else AssetSource.POINTER,
            url=url,
        )
        asset = self.fetcher.fetch(asset_id, hint)
        self._register(asset, result)
        # The pointer already covers this attachment.
        attachments.pop(asset_id, None)
        return asset

    def _add_attachment(self, attachment: Dict[str, Any], result: ContentResult) -> None:
        asset_id = attachment.get("id")
        if not asset_id:
            return
        mime_type = attachment.get("mime_type")
        hint = AssetHint(
            name=attachment.get("name") or "",
            size=attachment.get("size"),
            mime_type=mime_type,
            kind=classify_kind(mime_type),
            source=AssetSource.ATTACHMENT,
        )
        self._register(self.fetcher.fetch(asset_id, hint), result)

    def _extract_code_output(
        self, node_id: str, aggregate: Dict[str, Any], result: ContentResult
    ) -> CodeOutput:
        outputs: List[str] = []
        file_ids: List[str] = []

        for item in aggregate.get("messages") or []:
            if not isinstance(item, dict):
                continue
            if item.get("message_type") == "image":
                asset_id = parse_asset_pointer(item.get("image_url"))
                if not asset_id:
                    continue
                hint = AssetHint(
                    name=f"{asset_id}.png",
                    mime_type=item.get("mime_type") or "image/png",
                    kind=AssetKind.IMAGE,
                    source=AssetSource.CODE_OUTPUT,
                )
                asset = self.fetcher.fetch(asset_id, hint)
                self._register(asset, result)
                file_ids.append(asset.id)
            elif item.get("text"):
                outputs.append(str(item["text"]))

        final = aggregate.get("final_expression_output")
        if final:
            outputs.append(str(final))
        error = aggregate.get("in_kernel_exception")
        if isinstance(error, dict) and error.get("traceback"):
            outputs.append("".join(error["traceback"]))

        return CodeOutput(
            message_id=node_id,
            code=aggregate.get("code") or "",
            language=aggregate.get("language") or "python",
            status=aggregate.get("status"),
            output="\n".join(outputs),
            file_ids=file_ids,
        )

    def _extract_document(
        self, node_id: str, message: ChatGPTMessage, canvas: Dict[str, Any]
    ) -> DocumentUpdate:
        body: Dict[str, Any] = {}
        text = message.content.text or ""
        if not text and message.content.parts:
            text = "".join(p for p in message.content.parts if isinstance(p, str))
        try:
            decoded = json.loads(text) if text.lstrip().startswith("{") else None
            if isinstance(decoded, dict):
                body = decoded
        except ValueError:
            logger.debug("Canvas message %s is not JSON", node_id)

        created_at = parse_timestamp(message.create_time)
        revisions = [
            DocumentRevision(
                version=entry.get("version"),
                content=str(entry.get("content") or ""),
                message_id=node_id,
                created_at=parse_timestamp(entry.get("create_time")),
            )
            for entry in canvas.get("history") or []
            if isinstance(entry, dict)
        ]
        content = canvas.get("content") or body.get("content")
        if content is None:
            content = text
        revisions.append(
            DocumentRevision(
                version=canvas.get("version"),
                content=str(content),
                message_id=node_id,
                created_at=created_at,
            )
        )

        return DocumentUpdate(
            document_id=str(canvas["textdoc_id"]),
            title=canvas.get("title") or body.get("name") or "",
            doc_type=canvas.get("textdoc_type") or body.get("type"),
            revisions=revisions,
        )

    def _add_citation(self, node_id: str, reference: Dict[str, Any], result: ContentResult) -> None:
        meta = reference.get("metadata") if isinstance(reference.get("metadata"), dict) else reference
        if meta.get("type") != "file":
            return
        file_id = meta.get("id") or meta.get("file_id")
        if not file_id:
            return

        name = meta.get("name") or meta.get("title") or ""
        result.message.citations.append(
            Citation(
                message_id=node_id,
                file_id=file_id,
                title=name or None,
                start=reference.get("start_ix"),
                end=reference.get("end_ix"),
            )
        )
        mime_type = meta.get("mime_type")
        hint = AssetHint(
            name=name,
            mime_type=mime_type,
            kind=classify_kind(mime_type),
            source=AssetSource.CITATION,
        )
        self._register(self.fetcher.fetch(file_id, hint), result)

    def _register(self, asset: Asset, result: ContentResult) -> None:
        message = result.message
        if asset.kind == AssetKind.IMAGE:
            result.images[asset.id] = asset
            if asset.id not in message.image_ids:
                message.image_ids.append(asset.id)
        else:
            result.files[asset.id] = asset
            if asset.id not in message.file_ids:
                message.file_ids.append(asset.id)
