"""Tests for the local PDF store"""
import json
from datetime import datetime, timedelta

from unittest.mock import patch

import httpx
import pytest

from lien_sync.config import settings
from lien_sync.services.pdf_storage import (
    PdfStore,
    build_pdf_url,
    is_local_pdf_url,
    is_valid_pdf,
)


def _age_entry(store: PdfStore, pdf_id: str, days: int) -> None:
    """Rewrite a sidecar so the entry looks `days` old"""
    meta_path = store.storage_dir / f"{pdf_id}.json"
    metadata = json.loads(meta_path.read_text())
    metadata["createdAt"] = (datetime.utcnow() - timedelta(days=days)).isoformat()
    meta_path.write_text(json.dumps(metadata))


class TestPdfValidation:
    """Tests for the module-level helpers"""

    def test_valid_pdf(self, pdf_bytes):
        assert is_valid_pdf(pdf_bytes) is True

    def test_rejects_small_files(self, pdf_factory):
        # Error pages served with a PDF header are tiny
        assert is_valid_pdf(pdf_factory(5000)) is False

    def test_rejects_exact_minimum(self, pdf_factory):
        assert is_valid_pdf(pdf_factory(10000)) is False
        assert is_valid_pdf(pdf_factory(10001)) is True

    def test_rejects_html(self):
        assert is_valid_pdf(b"<html>" + b"x" * 20000) is False

    def test_rejects_empty(self):
        assert is_valid_pdf(b"") is False
        assert is_valid_pdf(None) is False

    def test_local_pdf_url(self):
        assert is_local_pdf_url("http://localhost:8000/api/pdf/abc") is True
        assert is_local_pdf_url("https://legacy.recorder.maricopa.gov/UnOfficialDocs/pdf/1.pdf") is False
        assert is_local_pdf_url(None) is False

    def test_build_pdf_url_is_local(self):
        url = build_pdf_url("0123456789abcdef0123456789abcdef")
        assert url.endswith("/api/pdf/0123456789abcdef0123456789abcdef")
        assert is_local_pdf_url(url)

    def test_custom_api_prefix(self):
        """URLs built under another prefix still count as stored PDFs"""
        with patch.object(settings, "API_PREFIX", "/v1"):
            url = build_pdf_url("a" * 32)
            assert url.endswith("/v1/pdf/" + "a" * 32)
            assert is_local_pdf_url(url) is True
            assert is_local_pdf_url("http://localhost:8000/api/pdf/abc") is False


class TestPdfStore:
    """Tests for store / get / cleanup"""

    @pytest.mark.asyncio
    async def test_store_and_get(self, pdf_store, pdf_bytes):
        pdf_id = await pdf_store.store(pdf_bytes, "20240001234")
        stored = await pdf_store.get(pdf_id)

        assert stored is not None
        assert stored.content == pdf_bytes
        assert stored.filename == "20240001234.pdf"
        assert stored.recording_number == "20240001234"

    @pytest.mark.asyncio
    async def test_store_writes_sidecar(self, pdf_store, pdf_bytes):
        pdf_id = await pdf_store.store(pdf_bytes, "20240001234")
        metadata = json.loads((pdf_store.storage_dir / f"{pdf_id}.json").read_text())

        assert metadata["id"] == pdf_id
        assert metadata["recordingNumber"] == "20240001234"
        assert metadata["size"] == len(pdf_bytes)

    @pytest.mark.asyncio
    async def test_store_rejects_invalid_pdf(self, pdf_store):
        with pytest.raises(ValueError):
            await pdf_store.store(b"<html>not found</html>", "20240001234")
        assert list(pdf_store.storage_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, pdf_store, pdf_bytes):
        first = await pdf_store.store(pdf_bytes, "20240001234")
        second = await pdf_store.store(pdf_bytes, "20240001234")
        assert first != second

    @pytest.mark.asyncio
    async def test_get_unknown_id(self, pdf_store):
        assert await pdf_store.get("0123456789abcdef0123456789abcdef") is None

    @pytest.mark.asyncio
    async def test_get_rejects_path_traversal(self, pdf_store):
        assert await pdf_store.get("../../etc/passwd") is None

    @pytest.mark.asyncio
    async def test_expired_entry_is_deleted_on_get(self, pdf_store, pdf_bytes):
        pdf_id = await pdf_store.store(pdf_bytes, "20240001234")
        _age_entry(pdf_store, pdf_id, days=8)

        assert await pdf_store.get(pdf_id) is None
        assert not (pdf_store.storage_dir / f"{pdf_id}.pdf").exists()
        assert not (pdf_store.storage_dir / f"{pdf_id}.json").exists()

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_expired(self, pdf_store, pdf_bytes):
        old_id = await pdf_store.store(pdf_bytes, "20240000001")
        fresh_id = await pdf_store.store(pdf_bytes, "20240000002")
        _age_entry(pdf_store, old_id, days=30)

        removed = await pdf_store.cleanup()

        assert removed == 1
        assert await pdf_store.get(old_id) is None
        assert await pdf_store.get(fresh_id) is not None

    @pytest.mark.asyncio
    async def test_cleanup_skips_unreadable_sidecars(self, pdf_store):
        (pdf_store.storage_dir / "broken.json").write_text("{not json")
        assert await pdf_store.cleanup() == 0


class TestRedownload:
    """Tests for re-fetching a PDF from the county site"""

    @pytest.mark.asyncio
    async def test_redownload_stores_new_copy(self, tmp_path, pdf_bytes):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, content=pdf_bytes, headers={"content-type": "application/pdf"})

        store = PdfStore(storage_dir=str(tmp_path / "pdfs"), transport=httpx.MockTransport(handler))
        new_id = await store.redownload("20240001234")

        assert new_id is not None
        assert requested[0].endswith("/20240001234.pdf")
        stored = await store.get(new_id)
        assert stored.content == pdf_bytes

    @pytest.mark.asyncio
    async def test_redownload_rejects_error_page(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>Document not available</html>")

        store = PdfStore(storage_dir=str(tmp_path / "pdfs"), transport=httpx.MockTransport(handler))
        assert await store.redownload("20240001234") is None

    @pytest.mark.asyncio
    async def test_redownload_handles_network_error(self, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        store = PdfStore(storage_dir=str(tmp_path / "pdfs"), transport=httpx.MockTransport(handler))
        assert await store.redownload("20240001234") is None
