"""
Supabase client module for database and storage operations.
Uses the service role key: callers resolve the recipient before reaching here.
"""
import logging
from typing import Optional, List, Dict, Any
from urllib.parse import quote

import httpx
from supabase import create_client, Client

from docsign.config import get_settings, Settings
from docsign.exceptions import StorageException
from docsign.signatures import stored_entries, upsert_signature_entries
from docsign.utils.datetime_utils import utc_now
from docsign.utils.logging import fingerprint

logger = logging.getLogger(__name__)

SIGNATURE_RECORD_SOURCE = "mapping"


class SupabaseClient:
    """Supabase wrapper: PostgREST tables through supabase-py, Storage over HTTP."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._base_client: Optional[Client] = None
        self._http_client = httpx.AsyncClient(
            base_url=f"{self.settings.supabase_url.rstrip('/')}/storage/v1",
            headers={
                "apikey": self.settings.supabase_service_role_key,
                "Authorization": f"Bearer {self.settings.supabase_service_role_key}",
            },
            timeout=httpx.Timeout(30.0, connect=10.0),
        )

    @property
    def client(self) -> Client:
        if self._base_client is None:
            self._base_client = create_client(
                self.settings.supabase_url,
                self.settings.supabase_service_role_key,
            )
        return self._base_client

    def table(self, table_name: str):
        return self.client.table(table_name)

    async def close(self) -> None:
        await self._http_client.aclose()

    # Document operations
    async def get_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        """Get a document row by ID."""
        result = self.table("documents").select(
            "id, file_path, file_name, original_file_path, status"
        ).eq("id", document_id).execute()

        return result.data[0] if result.data else None

    async def update_document(self, document_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        updates = {**updates, "updated_at": utc_now().isoformat()}

        result = self.table("documents").update(updates).eq("id", document_id).execute()

        if not result.data:
            raise StorageException(f"Document update returned no rows: {document_id}")

        logger.info(f"Updated document {document_id[:8]}: {sorted(updates.keys())}")
        return result.data[0]

    # Signature records
    async def get_signature_records(
        self,
        document_id: str,
        recipient_email: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Signed document_signatures rows, optionally for a single recipient."""
        query = self.table("document_signatures").select("*").eq("document_id", document_id)
        if recipient_email:
            query = query.eq("recipient_email", recipient_email).eq("status", "signed")

        result = query.execute()
        return result.data or []

    async def get_text_annotations(self, document_id: str, recipient_email: str) -> List[Dict[str, Any]]:
        """Text annotations of one recipient; stored signature annotations are dropped."""
        result = self.table("document_annotations").select("annotations").eq(
            "document_id", document_id
        ).eq("recipient_email", recipient_email).execute()

        if not result.data:
            return []

        annotations = result.data[0].get("annotations") or []
        return [a for a in annotations if isinstance(a, dict) and a.get("type") != "signature"]

    async def save_signature_entries(
        self,
        document_id: str,
        recipient_email: str,
        entries: List[Dict[str, Any]],
        signature_source: str = SIGNATURE_RECORD_SOURCE,
    ) -> List[Dict[str, Any]]:
        """
        Upsert signature entries into the recipient's record by entry id.

        Returns the full entry list now stored.
        """
        existing = await self.get_signature_records(document_id, recipient_email)
        now = utc_now().isoformat()

        if existing:
            record = existing[0]
            merged = upsert_signature_entries(stored_entries(record.get("signature_data")), entries)
            self.table("document_signatures").update({
                "signature_data": {"signatures": merged},
                "signature_source": signature_source,
                "signed_at": now,
                "updated_at": now,
            }).eq("document_id", document_id).eq(
                "recipient_email", recipient_email
            ).eq("status", "signed").execute()
            logger.info(
                f"Merged signatures for {fingerprint(recipient_email, 'rcp_')}: "
                f"{len(merged) - len(entries)} kept + {len(entries)} incoming = {len(merged)}"
            )
        else:
            merged = upsert_signature_entries([], entries)
            self.table("document_signatures").insert({
                "document_id": document_id,
                "recipient_email": recipient_email,
                "signature_data": {"signatures": merged},
                "signature_source": signature_source,
                "signed_at": now,
                "status": "signed",
            }).execute()
            logger.info(f"Created signature record for {fingerprint(recipient_email, 'rcp_')}")

        return merged

    # Storage operations
    def _object_url(self, path: str) -> str:
        return f"/object/{self.settings.storage_bucket}/{quote(path.lstrip('/'))}"

    async def download_file(self, path: str) -> bytes:
        """Download an object from the documents bucket."""
        try:
            response = await self._http_client.get(self._object_url(path))
        except httpx.HTTPError as e:
            logger.error(f"Storage download failed for {path}: {e}")
            raise StorageException(f"Failed to download document: {e}")

        if response.status_code == 404 or (response.status_code == 400 and "not_found" in response.text):
            raise StorageException(f"Document file not found in storage: {path}")
        if response.status_code != 200:
            logger.error(f"Storage download {path}: status={response.status_code} body='{response.text[:200]}'")
            raise StorageException(f"Failed to download document (status {response.status_code})")

        return response.content

    async def upload_file(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/pdf",
        upsert: bool = True,
    ) -> str:
        """Upload bytes to the documents bucket, returning the object path."""
        headers = {
            "Content-Type": content_type,
            "x-upsert": "true" if upsert else "false",
            "Cache-Control": "max-age=3600",
        }
        try:
            response = await self._http_client.post(self._object_url(path), content=data, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Storage upload failed for {path}: {e}")
            raise StorageException(f"Failed to upload document: {e}")

        if response.status_code not in (200, 201):
            logger.error(f"Storage upload {path}: status={response.status_code} body='{response.text[:200]}'")
            raise StorageException(f"Failed to upload document (status {response.status_code})")

        logger.info(f"Uploaded {len(data)} bytes to {path}")
        return path


# Singleton instance
_supabase_client: Optional[SupabaseClient] = None


def get_supabase_client() -> SupabaseClient:
    """Get the Supabase client singleton."""
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = SupabaseClient()
    return _supabase_client
