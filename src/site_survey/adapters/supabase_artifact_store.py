"""Supabase Storage implementation of the artifact store."""

from dataclasses import dataclass

from supabase import Client

from site_survey.domain.errors import PersistenceWriteError
from site_survey.services.artifacts import ArtifactStore


@dataclass
class SupabaseArtifactStore(ArtifactStore):
    """Stores step photos in a Supabase Storage bucket."""

    client: Client
    bucket: str

    def put(self, key: str, data: bytes, content_type: str) -> None:
        """Upload bytes, overwriting any existing object at key."""
        response = self.client.storage.from_(self.bucket).upload(
            key,
            data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        if not response:
            raise PersistenceWriteError(f"Failed to store artifact {key}")

    def get(self, key: str) -> bytes:
        """Download the object stored at key."""
        return self.client.storage.from_(self.bucket).download(key)

    def get_retrieval_ref(self, key: str, ttl_seconds: int) -> str:
        """Return a signed URL valid for ttl_seconds."""
        response = self.client.storage.from_(self.bucket).create_signed_url(
            key, ttl_seconds
        )
        url = response.get("signedURL") or response.get("signedUrl")
        if not url:
            raise RuntimeError(f"Failed to sign artifact {key}")
        return url

    def delete(self, key: str) -> None:
        """Remove the object at key."""
        self.client.storage.from_(self.bucket).remove([key])
