"""
Tests for artifact persistence.
"""
import base64
import os
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from signdesk.config import Settings
from signdesk.core.types import Artifact, DocumentDescriptor, ExportResult, MimeCategory, Placement
from signdesk.storage import (
    ArtifactNotFound,
    FallbackArtifactStore,
    LocalArtifactStore,
    PersistenceError,
    RemoteArtifactStore,
    SignedDocumentRecord,
    build_artifact_store,
)


def make_result(content: bytes = b"\x89PNG fake", artifact_id: str = "art_TEST") -> ExportResult:
    artifact = Artifact(
        id=artifact_id,
        content=content,
        mime_type="image/png",
        suggested_name="SIGNED_scan.png",
        width=800,
        height=1000,
        sha256="abc123",
    )
    placements = (Placement(id="plc_1", signature_asset_ref="sig_RED", x=10, y=20, width=250, height=100),)
    return ExportResult(artifact=artifact, placements=placements, working_scale=(2.0, 2.0))


def make_document() -> DocumentDescriptor:
    return DocumentDescriptor(
        id="doc_IMAGE",
        name="scan.png",
        mime_category=MimeCategory.IMAGE,
        mime_type="image/png",
        source_handle=b"",
        native_width=800,
        native_height=1000,
    )


class TestSignedDocumentRecord:

    def test_from_export(self):
        record = SignedDocumentRecord.from_export(make_result(), make_document(), "ana@example.com")
        assert record.id == "art_TEST"
        assert record.name == "SIGNED_scan.png"
        assert record.original_document_id == "doc_IMAGE"
        assert record.signed_by == "ana@example.com"
        assert record.signatures[0]["id"] == "plc_1"
        assert record.category == "signed"

    def test_dict_round_trip_keeps_timestamp(self):
        record = SignedDocumentRecord.from_export(make_result(), make_document())
        restored = SignedDocumentRecord.from_dict(record.to_dict())
        assert restored.signed_at == record.signed_at
        assert restored.working_scale == (2.0, 2.0)

    def test_from_dict_ignores_unknown_keys(self):
        data = SignedDocumentRecord.from_export(make_result(), make_document()).to_dict()
        data["legacy_field"] = "x"
        assert SignedDocumentRecord.from_dict(data).id == "art_TEST"


class TestLocalArtifactStore:

    @pytest.mark.asyncio
    async def test_save_and_load(self, artifact_store):
        record = await artifact_store.save(make_result(b"content"), make_document())

        assert os.path.exists(os.path.join(artifact_store.base_dir, "art_TEST.png"))
        assert os.path.exists(os.path.join(artifact_store.base_dir, "art_TEST.json"))

        loaded, content = await artifact_store.load(record.id)
        assert content == b"content"
        assert loaded.sha256 == "abc123"

    @pytest.mark.asyncio
    async def test_load_missing(self, artifact_store):
        with pytest.raises(ArtifactNotFound):
            await artifact_store.load("art_MISSING")

    @pytest.mark.parametrize("artifact_id", ["", "../etc/passwd", "a/b"])
    def test_invalid_ids_rejected(self, artifact_store, artifact_id):
        with pytest.raises(ArtifactNotFound):
            artifact_store.read(artifact_id)

    def test_write_failure_is_persistence_error(self, temp_dir):
        blocker = os.path.join(temp_dir, "file")
        with open(blocker, "w") as f:
            f.write("x")
        store = LocalArtifactStore(os.path.join(blocker, "artifacts"))
        record = SignedDocumentRecord.from_export(make_result(), make_document())
        with pytest.raises(PersistenceError):
            store.write(record, b"content")


class TestRemoteArtifactStore:

    @pytest.mark.asyncio
    async def test_put_payload(self):
        store = RemoteArtifactStore("https://store.example.com/", api_key="secret")
        mock_response = MagicMock()
        mock_response.raise_for_status.return_value = None

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.__aenter__.return_value = mock_client
            mock_client.__aexit__.return_value = None
            mock_client.put.return_value = mock_response
            mock_client_class.return_value = mock_client

            await store.save(make_result(b"content"), make_document())

        args, kwargs = mock_client.put.call_args
        assert args[0] == "https://store.example.com/signed-documents/art_TEST"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert base64.b64decode(kwargs["json"]["content"]) == b"content"
        assert kwargs["json"]["original_document_id"] == "doc_IMAGE"

    @pytest.mark.asyncio
    async def test_unreachable_is_persistence_error(self):
        store = RemoteArtifactStore("https://store.example.com")

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.__aenter__.return_value = mock_client
            mock_client.__aexit__.return_value = None
            mock_client.put.side_effect = httpx.ConnectError("refused")
            mock_client_class.return_value = mock_client

            with pytest.raises(PersistenceError):
                await store.save(make_result(), make_document())


class TestFallbackArtifactStore:
    """Remote failures keep the local copy."""

    @pytest.mark.asyncio
    async def test_remote_failure_falls_back_to_local(self, artifact_store):
        remote = MagicMock(spec=RemoteArtifactStore)
        remote.save = AsyncMock(side_effect=PersistenceError("down"))
        store = FallbackArtifactStore(remote, artifact_store)

        record = await store.save(make_result(b"content"), make_document())

        remote.save.assert_awaited_once()
        _, content = await artifact_store.load(record.id)
        assert content == b"content"

    @pytest.mark.asyncio
    async def test_load_prefers_local(self, artifact_store):
        remote = MagicMock(spec=RemoteArtifactStore)
        remote.save = AsyncMock()
        remote.load = AsyncMock()
        store = FallbackArtifactStore(remote, artifact_store)

        record = await store.save(make_result(b"content"), make_document())
        _, content = await store.load(record.id)

        assert content == b"content"
        remote.load.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_load_missing_locally_asks_remote(self, artifact_store):
        remote = MagicMock(spec=RemoteArtifactStore)
        remote.load = AsyncMock(side_effect=ArtifactNotFound("nope"))
        store = FallbackArtifactStore(remote, artifact_store)

        with pytest.raises(ArtifactNotFound):
            await store.load("art_ELSEWHERE")
        remote.load.assert_awaited_once_with("art_ELSEWHERE")


class TestBuildArtifactStore:

    def test_local_only_by_default(self, settings):
        assert isinstance(build_artifact_store(settings), LocalArtifactStore)

    def test_remote_configured(self, temp_dir):
        settings = Settings(storage_dir=temp_dir, remote_store_url="https://store.example.com")
        assert isinstance(build_artifact_store(settings), FallbackArtifactStore)
