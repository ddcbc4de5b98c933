# core/supabase_client.py
"""
Shared Supabase client for the social API.

The service reads and writes on behalf of every user, so it holds a single
client. The service-role key is used when configured; the anon key is the
fallback for deployments where row level security already allows the
service's queries.
"""
import asyncio
from typing import Optional, Tuple

from supabase import Client, create_client

from core.config import settings, logger as core_logger

logger = core_logger.getChild("SupabaseClient")

_client: Optional[Client] = None
_init_lock = asyncio.Lock()


def _select_key() -> Tuple[str, str]:
    """Returns (key, key name) for the client, preferring the service-role key."""
    if settings.SUPABASE_SERVICE_KEY:
        return settings.SUPABASE_SERVICE_KEY, "service role"
    if settings.SUPABASE_KEY:
        logger.warning("SUPABASE_SERVICE_KEY not set, falling back to the anon key.")
        return settings.SUPABASE_KEY, "anon"
    raise ValueError("Neither SUPABASE_SERVICE_KEY nor SUPABASE_KEY is configured")


async def get_supabase_client() -> Client:
    """Creates the client on first use and returns the cached instance afterwards."""
    global _client
    if _client is not None:
        return _client

    async with _init_lock:
        if _client is None:
            if not settings.SUPABASE_URL:
                logger.error("SUPABASE_URL not configured. Cannot create client.")
                raise ValueError("SUPABASE_URL not configured")
            key, key_name = _select_key()
            logger.info(f"Creating Supabase client with {key_name} key...")
            try:
                # create_client is synchronous
                _client = await asyncio.to_thread(create_client, settings.SUPABASE_URL, key)
            except Exception as e:
                logger.error(f"Supabase client creation failed: {e}", exc_info=True)
                raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e
            logger.info("Supabase client ready.")
    return _client


# Collection names are a contract with the backend schema
USERS_TABLE = settings.USERS_TABLE
POSTS_TABLE = settings.POSTS_TABLE
SAVES_TABLE = settings.SAVES_TABLE
COMMENTS_TABLE = "comments"
