"""Artifact storage interface and key scheme."""

from typing import Protocol

from site_survey.domain.steps import format_step_id

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


class ArtifactStore(Protocol):
    """Interface for durable photo storage."""

    def put(self, key: str, data: bytes, content_type: str) -> None:
        """Store bytes under key, replacing any existing object."""

    def get(self, key: str) -> bytes:
        """Return the bytes stored under key."""

    def get_retrieval_ref(self, key: str, ttl_seconds: int) -> str:
        """Return a time-limited URL for reading key."""

    def delete(self, key: str) -> None:
        """Remove the object stored under key, if any."""


def artifact_key(inspection_id: str, step_id: float, content_type: str) -> str:
    """Build the deterministic storage key for a step's photo."""
    extension = _EXTENSIONS.get(content_type, "jpg")
    return f"{inspection_id}/step_{format_step_id(step_id)}.{extension}"


def detect_content_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
