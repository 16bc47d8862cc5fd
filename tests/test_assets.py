"""
Tests for the memoizing AssetFetcher.
"""
import pytest

from chatgpt_exporter.core.errors import AuthExpiredError
from chatgpt_exporter.core.models import AssetKind, AssetSource
from chatgpt_exporter.extractors import AssetFetcher, AssetHint

from fakes import FakeReader


def test_asset_downloaded_once_per_run():
    reader = FakeReader(files={"file-1": b"hello"})
    fetcher = AssetFetcher(reader)

    first = fetcher.fetch("file-1", AssetHint(name="notes.txt", mime_type="text/plain"))
    second = fetcher.fetch("file-1")

    assert first is second
    assert first.payload == b"hello"
    assert first.size == 5
    assert reader.download_calls == ["file-1"]
    assert fetcher.download_count == 1
    assert "file-1" in fetcher


def test_failed_download_is_cached_as_reference():
    reader = FakeReader()
    fetcher = AssetFetcher(reader)
    hint = AssetHint(name="photo.jpg", size=2048, mime_type="image/jpeg", kind=AssetKind.IMAGE)

    asset = fetcher.fetch("file-missing", hint)
    again = fetcher.fetch("file-missing", hint)

    assert asset.payload is None
    assert not asset.has_payload
    assert asset.size == 2048
    assert asset.mime_type == "image/jpeg"
    assert asset.kind == AssetKind.IMAGE
    assert again is asset
    assert reader.download_calls == ["file-missing"]


def test_download_info_fills_missing_metadata():
    fetcher = AssetFetcher(FakeReader(files={"file-2": b"abc"}))

    asset = fetcher.fetch("file-2")

    assert asset.name == "file-2.bin"
    assert asset.size == 3
    assert asset.source == AssetSource.ATTACHMENT


def test_url_hint_downloads_url():
    url = "https://files.example.com/generated.webp"
    reader = FakeReader(urls={url: b"WEBP"})
    fetcher = AssetFetcher(reader)

    asset = fetcher.fetch("generated-1", AssetHint(url=url, kind=AssetKind.IMAGE, source=AssetSource.GENERATED))

    assert asset.payload == b"WEBP"
    assert reader.download_calls == [url]


def test_download_disabled_returns_references():
    reader = FakeReader(files={"file-1": b"hello"})
    fetcher = AssetFetcher(reader, download=False)

    asset = fetcher.fetch("file-1", AssetHint(name="a.txt", size=5))

    assert asset.payload is None
    assert asset.name == "a.txt"
    assert reader.download_calls == []
    assert fetcher.download_count == 0


def test_auth_expiry_is_not_swallowed():
    reader = FakeReader(files={"file-1": AuthExpiredError("expired")})
    with pytest.raises(AuthExpiredError):
        AssetFetcher(reader).fetch("file-1")


def test_image_reference_upgrades_cached_file():
    reader = FakeReader(files={"file-1": b"PNG"})
    fetcher = AssetFetcher(reader)

    first = fetcher.fetch("file-1", AssetHint(name="upload", source=AssetSource.CITATION))
    second = fetcher.fetch("file-1", AssetHint(mime_type="image/png", kind=AssetKind.IMAGE))
    third = fetcher.fetch("file-1", AssetHint(name="upload"))

    assert first.kind == AssetKind.FILE
    assert second.kind == AssetKind.IMAGE
    assert second.mime_type == "image/png"
    assert second.payload == b"PNG"
    assert second.relative_path().startswith("images/")
    assert third is second
    assert reader.download_calls == ["file-1"]
