import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formadmin.config import settings
from formadmin.database import client, ensure_form_indexes, forms_db
from formadmin.errors import register_exception_handlers
from formadmin.logging_config import configure_logging
from formadmin.responses import form_error_body
from formadmin.routers.form_definitions import router as form_definitions_router
from formadmin.routers.form_instances import router as form_instances_router
from formadmin.routers.form_stats import router as form_stats_router

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await ensure_form_indexes(forms_db)
    except Exception:
        # the service still answers /health, requests fail with 500 until Mongo is back
        logger.exception("MongoDB unavailable, indexes not ensured")
    yield
    client.close()
    logger.info("MongoDB connection closed")


app = FastAPI(title="Form Admin Forms Service (FastAPI + Mongo)", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

register_exception_handlers(app, form_error_body)

app.include_router(form_definitions_router)
app.include_router(form_instances_router)
app.include_router(form_stats_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
