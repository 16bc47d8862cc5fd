"""
Memoized asset downloads.

One AssetFetcher lives for a whole export run: an asset referenced from
several messages (or conversations) is downloaded once.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from chatgpt_exporter.core.errors import AssetUnavailable, NetworkError
from chatgpt_exporter.core.models import Asset, AssetKind, AssetSource
from chatgpt_exporter.readers.chatgpt_reader import ChatGPTReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetHint:
    """Metadata known about an asset from the message that references it."""

    name: str = ""
    size: Optional[int] = None
    mime_type: Optional[str] = None
    kind: AssetKind = AssetKind.FILE
    source: AssetSource = AssetSource.ATTACHMENT
    url: Optional[str] = None


class AssetFetcher:
    """
    Download asset payloads by id, caching every outcome.

    Failed downloads are cached as reference-only assets (payload None) so a
    broken asset is not retried by every message that references it. An asset
    first seen as a file is upgraded to an image when a later reference
    declares it one.
    AuthExpiredError and Cancelled are never caught here.

    Parameters
    ----------
    reader : ChatGPTReader
        API client; its requester applies the shared pacing budget
    download : bool
        When False, every asset is returned reference-only without network
    """

    def __init__(self, reader: ChatGPTReader, download: bool = True):
        self.reader = reader
        self.download = download
        self._cache: Dict[str, Asset] = {}
        self.download_count = 0

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._cache

    def fetch(self, asset_id: str, hint: Optional[AssetHint] = None) -> Asset:
        """
        Return the asset for asset_id, downloading it on the first request.

        Parameters
        ----------
        asset_id : str
            File-service id (or a synthetic id for URL-only generated images)
        hint : AssetHint, optional
            Name, size, media type and kind declared by the referencing message

        Returns
        -------
        Asset
            Asset with payload, or reference-only on failure
        """
        cached = self._cache.get(asset_id)
        if cached is not None:
            if hint is not None and hint.kind == AssetKind.IMAGE and cached.kind != AssetKind.IMAGE:
                logger.debug("Asset %s is referenced as an image, upgrading kind", asset_id)
                cached = cached.model_copy(
                    update={"kind": AssetKind.IMAGE, "mime_type": cached.mime_type or hint.mime_type}
                )
                self._cache[asset_id] = cached
            return cached

        hint = hint or AssetHint()
        name = hint.name
        size = hint.size
        mime_type = hint.mime_type
        payload = None

        if self.download:
            self.download_count += 1
            try:
                if hint.url:
                    payload = self.reader.download_url(hint.url)
                else:
                    payload, info = self.reader.download_file(asset_id)
                    name = name or info.file_name or ""
                    size = size if size is not None else info.file_size_bytes
                    mime_type = mime_type or info.mime_type
            except (NetworkError, AssetUnavailable, ValueError) as e:
                logger.warning("Asset %s not downloaded: %s", asset_id, e)
                payload = None

        if size is None and payload is not None:
            size = len(payload)

        asset = Asset(
            id=asset_id,
            name=name or asset_id,
            size=size,
            mime_type=mime_type,
            kind=hint.kind,
            source=hint.source,
            payload=payload,
        )
        self._cache[asset_id] = asset
        return asset
