import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formadmin.config import settings
from formadmin.database import client, ensure_registry_indexes, registry_db
from formadmin.errors import register_exception_handlers
from formadmin.logging_config import configure_logging
from formadmin.responses import registry_error_body
from formadmin.routers.app_groups import router as app_groups_router
from formadmin.routers.app_members import router as app_members_router
from formadmin.routers.app_versions import router as app_versions_router
from formadmin.routers.apps import router as apps_router

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # not guarded like the forms service: duplicate members and versions are only
    # rejected by these unique indexes, so the registry refuses to start without them
    await ensure_registry_indexes(registry_db)
    yield
    client.close()
    logger.info("MongoDB connection closed")


app = FastAPI(
    title="Form Admin App Registry API",
    description="Apps, groups, members and versions",
    version="1.0.0",
    docs_url="/documentation",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app, registry_error_body)

app.include_router(apps_router)
app.include_router(app_members_router)
app.include_router(app_versions_router)
app.include_router(app_groups_router)


@app.get("/api/v1/test")
async def root():
    return {"root": True}


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.REGISTRY_PORT)
