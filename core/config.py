# core/config.py
import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import logging

# Load variables from .env file located in the project root directory
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
else:
    load_dotenv() # Fallback

class Settings(BaseSettings):
    """Loads configuration settings from environment variables and .env file."""

    # --- Supabase Configuration ---
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None # ANON key usually
    SUPABASE_SERVICE_KEY: str | None = None # SERVICE_ROLE key

    # --- Collections (must match the backend schema) ---
    USERS_TABLE: str = "users"
    POSTS_TABLE: str = "posts"
    SAVES_TABLE: str = "saves"

    # --- Storage Configuration ---
    MEDIA_STORAGE_BUCKET: str = "post-media"

    # --- Feed Configuration ---
    INFINITE_POSTS_PAGE_SIZE: int = int(os.getenv("INFINITE_POSTS_PAGE_SIZE", 9))
    RECENT_POSTS_LIMIT: int = int(os.getenv("RECENT_POSTS_LIMIT", 20))

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'

# Instantiate settings once for import
settings = Settings()

# --- Logging Setup ---
log_level_str = os.getenv("LOG_LEVEL", "INFO").upper(); log_level = getattr(logging, log_level_str, logging.INFO)
logging.basicConfig(level=log_level, format='%(asctime)s - %(name)s - [%(levelname)s] - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
logger = logging.getLogger("SNF_Core")
logging.getLogger("httpx").setLevel(logging.WARNING); logging.getLogger("supabase").setLevel(logging.WARNING)
logging.getLogger("watchfiles").setLevel(logging.WARNING)

# --- Configuration Validation Checks ---
logger.info(f"Core Settings loaded. Log Level: {log_level_str}")
if not settings.SUPABASE_URL: logger.warning("Supabase URL missing.")
if not settings.SUPABASE_SERVICE_KEY and not settings.SUPABASE_KEY: logger.warning("No Supabase key configured (SUPABASE_SERVICE_KEY or SUPABASE_KEY).")
if not settings.MEDIA_STORAGE_BUCKET: logger.warning("MEDIA_STORAGE_BUCKET missing, post images cannot be linked.")
else: logger.info(f"Using Supabase Storage Bucket: {settings.MEDIA_STORAGE_BUCKET}")
logger.info(f"Collections: users='{settings.USERS_TABLE}', posts='{settings.POSTS_TABLE}', saves='{settings.SAVES_TABLE}'")

try: assert settings.INFINITE_POSTS_PAGE_SIZE > 0 and settings.RECENT_POSTS_LIMIT > 0
except AssertionError: logger.error(f"Invalid feed limits: page_size={settings.INFINITE_POSTS_PAGE_SIZE}, recent={settings.RECENT_POSTS_LIMIT}.")
logger.info(f"Feed Config: Page Size={settings.INFINITE_POSTS_PAGE_SIZE}, Recent Limit={settings.RECENT_POSTS_LIMIT}")
