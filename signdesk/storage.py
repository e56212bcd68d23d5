"""
Artifact persistence.

Signed artifacts and the placement snapshot that produced them are handed to
an ArtifactStore:
- LocalArtifactStore writes <id>.<ext> and <id>.json into a directory
- RemoteArtifactStore PUTs the record to a key-value HTTP endpoint (httpx)
- FallbackArtifactStore tries the remote store and falls back to the local
  directory on any error; a local copy is always kept for downloads
"""
import asyncio
import base64
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httpx

from signdesk.config import Settings, get_settings
from signdesk.core.types import DocumentDescriptor, ExportResult
from signdesk.utils.datetime_utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "application/pdf": "pdf",
    "image/png": "png",
}


class PersistenceError(Exception):
    """Artifact could not be stored or read back."""
    pass


class ArtifactNotFound(PersistenceError):
    pass


@dataclass
class SignedDocumentRecord:
    """Metadata stored alongside a signed artifact."""
    id: str
    name: str
    mime_type: str
    size: int
    sha256: str
    signatures: List[Dict[str, Any]]
    original_document_id: str
    signed_by: Optional[str] = None
    signed_at: datetime = field(default_factory=utc_now)
    working_scale: Tuple[float, float] = (1.0, 1.0)
    category: str = "signed"

    @classmethod
    def from_export(
        cls,
        result: ExportResult,
        document: DocumentDescriptor,
        signed_by: Optional[str] = None,
    ) -> "SignedDocumentRecord":
        artifact = result.artifact
        return cls(
            id=artifact.id,
            name=artifact.suggested_name,
            mime_type=artifact.mime_type,
            size=artifact.size,
            sha256=artifact.sha256,
            signatures=[p.to_dict() for p in result.placements],
            original_document_id=document.id,
            signed_by=signed_by,
            working_scale=result.working_scale,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["signed_at"] = self.signed_at.isoformat()
        data["working_scale"] = list(self.working_scale)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignedDocumentRecord":
        data = dict(data)
        data["signed_at"] = parse_timestamp(data.get("signed_at")) or utc_now()
        data["working_scale"] = tuple(data.get("working_scale") or (1.0, 1.0))
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})


class ArtifactStore(Protocol):
    async def save(
        self,
        result: ExportResult,
        document: DocumentDescriptor,
        signed_by: Optional[str] = None,
    ) -> SignedDocumentRecord:
        ...

    async def load(self, artifact_id: str) -> Tuple[SignedDocumentRecord, bytes]:
        ...


class LocalArtifactStore:
    """Directory-backed store."""

    def __init__(self, base_dir: str):
        self.base_dir = base_dir

    def _paths(self, artifact_id: str, mime_type: str) -> Tuple[str, str]:
        if not artifact_id or "/" in artifact_id or ".." in artifact_id:
            raise ArtifactNotFound(f"Invalid artifact id: {artifact_id}")
        ext = EXTENSIONS.get(mime_type, "bin")
        return (
            os.path.join(self.base_dir, f"{artifact_id}.{ext}"),
            os.path.join(self.base_dir, f"{artifact_id}.json"),
        )

    def write(self, record: SignedDocumentRecord, content: bytes) -> SignedDocumentRecord:
        content_path, meta_path = self._paths(record.id, record.mime_type)
        try:
            os.makedirs(self.base_dir, exist_ok=True)
            with open(content_path, "wb") as f:
                f.write(content)
            with open(meta_path, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, ensure_ascii=False)
        except OSError as e:
            raise PersistenceError(f"Could not write artifact {record.id}: {e}")
        logger.info(f"Artifact {record.id} stored locally in {self.base_dir}")
        return record

    def read(self, artifact_id: str) -> Tuple[SignedDocumentRecord, bytes]:
        meta_path = self._paths(artifact_id, "")[1]
        if not os.path.exists(meta_path):
            raise ArtifactNotFound(f"Artifact not found: {artifact_id}")
        try:
            with open(meta_path, encoding="utf-8") as f:
                record = SignedDocumentRecord.from_dict(json.load(f))
            content_path = self._paths(artifact_id, record.mime_type)[0]
            with open(content_path, "rb") as f:
                content = f.read()
        except (OSError, ValueError, TypeError) as e:
            raise PersistenceError(f"Could not read artifact {artifact_id}: {e}")
        return record, content

    async def save(
        self,
        result: ExportResult,
        document: DocumentDescriptor,
        signed_by: Optional[str] = None,
    ) -> SignedDocumentRecord:
        record = SignedDocumentRecord.from_export(result, document, signed_by)
        return await asyncio.to_thread(self.write, record, result.artifact.content)

    async def load(self, artifact_id: str) -> Tuple[SignedDocumentRecord, bytes]:
        return await asyncio.to_thread(self.read, artifact_id)


class RemoteArtifactStore:
    """Key-value document store over HTTP: PUT/GET {base_url}/signed-documents/{id}."""

    def __init__(self, base_url: str, api_key: str = "", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def save(
        self,
        result: ExportResult,
        document: DocumentDescriptor,
        signed_by: Optional[str] = None,
    ) -> SignedDocumentRecord:
        record = SignedDocumentRecord.from_export(result, document, signed_by)
        payload = record.to_dict()
        payload["content"] = base64.b64encode(result.artifact.content).decode("ascii")

        url = f"{self.base_url}/signed-documents/{record.id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.put(url, headers=self._headers(), json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PersistenceError(
                f"Remote store rejected artifact {record.id}: HTTP {e.response.status_code}"
            )
        except httpx.HTTPError as e:
            raise PersistenceError(f"Remote store unreachable: {e}")

        logger.info(f"Artifact {record.id} stored remotely")
        return record

    async def load(self, artifact_id: str) -> Tuple[SignedDocumentRecord, bytes]:
        url = f"{self.base_url}/signed-documents/{artifact_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self._headers())
                if response.status_code == 404:
                    raise ArtifactNotFound(f"Artifact not found: {artifact_id}")
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise PersistenceError(f"Remote store unreachable: {e}")

        try:
            content = base64.b64decode(data.pop("content"))
            return SignedDocumentRecord.from_dict(data), content
        except (KeyError, ValueError, TypeError) as e:
            raise PersistenceError(f"Malformed remote record {artifact_id}: {e}")


class FallbackArtifactStore:
    """Remote store first, local directory when the remote store fails."""

    def __init__(self, primary: RemoteArtifactStore, local: LocalArtifactStore):
        self.primary = primary
        self.local = local

    async def save(
        self,
        result: ExportResult,
        document: DocumentDescriptor,
        signed_by: Optional[str] = None,
    ) -> SignedDocumentRecord:
        # Local copy serves downloads either way
        record = await self.local.save(result, document, signed_by)
        try:
            await self.primary.save(result, document, signed_by)
        except PersistenceError as e:
            logger.error(f"Remote store failed for {record.id}, kept local copy only: {e}")
        return record

    async def load(self, artifact_id: str) -> Tuple[SignedDocumentRecord, bytes]:
        try:
            return await self.local.load(artifact_id)
        except ArtifactNotFound:
            return await self.primary.load(artifact_id)


def build_artifact_store(settings: Optional[Settings] = None) -> ArtifactStore:
    settings = settings or get_settings()
    local = LocalArtifactStore(os.path.join(settings.storage_dir, "artifacts"))
    if settings.remote_store_url:
        remote = RemoteArtifactStore(settings.remote_store_url, settings.remote_store_api_key)
        return FallbackArtifactStore(remote, local)
    return local


_store: Optional[ArtifactStore] = None


def get_artifact_store() -> ArtifactStore:
    """Get artifact store singleton."""
    global _store
    if _store is None:
        _store = build_artifact_store()
    return _store
