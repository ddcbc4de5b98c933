# services/social_api/app/main.py
from fastapi import FastAPI, Request
from contextlib import asynccontextmanager

from core.config import logger as core_logger
from core.document_store import get_document_store
from core.models import ApiResponse
from core.storage import get_file_storage

# Get child logger specific to this service/module
logger = core_logger.getChild("SocialAPI").getChild("Main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: build the backend clients and store them in app.state
    logger.info("Social API lifespan startup: Initializing backend clients.")
    try:
        app.state.store = await get_document_store()
        app.state.storage = await get_file_storage()
        logger.info("Document store and file storage initialized and stored in app.state.")
    except (ValueError, RuntimeError) as e:
        # Let the app start; requests needing the backend get a 503
        logger.error(f"Failed to initialize backend clients during startup: {e}", exc_info=False)
        app.state.store = None
        app.state.storage = None

    yield # Application runs here

    logger.info("Social API lifespan shutdown: Releasing backend clients.")
    app.state.store = None
    app.state.storage = None


app = FastAPI(
    title="Snapfeed Social API",
    description="Posts, likes, saves, comments and follows on top of Supabase",
    version="1.0.0",
    lifespan=lifespan
)


# --- Health Check ---
@app.get("/health", response_model=ApiResponse, tags=["Meta"])
async def health_check(request: Request):
    store_status = "initialized" if getattr(request.app.state, 'store', None) else "NOT initialized"
    storage_status = "initialized" if getattr(request.app.state, 'storage', None) else "NOT initialized"
    return ApiResponse(
        status="success",
        message=f"Social API is running (Document store: {store_status}, File storage: {storage_status})"
    )


# --- Routing ---
from .routers import comments, posts, users

app.include_router(posts.router, prefix="/posts", tags=["Posts"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(comments.router, prefix="/comments", tags=["Comments"])
