# core/storage.py
"""
Core Storage Utilities.

Thin wrapper over the Supabase Storage bucket that holds post images and
avatars. Clients upload files to the bucket directly; this module only turns
stored file IDs into public URLs and deletes files that are no longer
referenced.
"""
import asyncio
from typing import Optional

from core.config import settings, logger as core_logger
from core.errors import TransientBackendError
from core.supabase_client import get_supabase_client

logger = core_logger.getChild("Storage")


class FileStorage:
    def __init__(self, client, bucket: Optional[str] = None):
        self.client = client
        self.bucket = bucket or settings.MEDIA_STORAGE_BUCKET

    def get_file_url(self, file_id: str) -> str:
        """Public URL for a stored file. Built locally, no network call."""
        url = self.client.storage.from_(self.bucket).get_public_url(file_id)
        if not url:
            raise ValueError(f"Storage returned no URL for file '{file_id}'")
        return url

    async def delete_file(self, file_id: str) -> None:
        job_prefix = f"[{file_id}]"

        def storage_call():
            return self.client.storage.from_(self.bucket).remove([file_id])

        try:
            await asyncio.to_thread(storage_call)
            logger.info(f"{job_prefix} Deleted file from bucket '{self.bucket}'.")
        except Exception as e:
            logger.error(f"{job_prefix} Failed to delete file from bucket '{self.bucket}': {e}", exc_info=False)
            raise TransientBackendError(f"Failed to delete file '{file_id}': {e}") from e


async def get_file_storage() -> FileStorage:
    client = await get_supabase_client()
    return FileStorage(client)
