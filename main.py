import time
import uuid
import sys
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from asgi_correlation_id import CorrelationIdMiddleware, correlation_id
from pymongo.errors import PyMongoError

from obituary_search.config import CORS_ALLOW_ORIGINS, MEMORY_SEED_FILE, STORAGE_BACKEND
from obituary_search.database import MongoObituaryStore, connect_to_mongo, close_mongo_connection, db
from obituary_search.errors import StorageError
from obituary_search.logging_setup import setup_logging, logger
from obituary_search.routes import router
from obituary_search.store import InMemoryObituaryStore

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handles application startup and shutdown events.
    """
    setup_logging()
    logger.info("--- Application Starting Up ---", extra={"storage_backend": STORAGE_BACKEND})

    if STORAGE_BACKEND == "memory":
        try:
            app.state.obituary_store = (
                InMemoryObituaryStore.from_json_file(MEMORY_SEED_FILE) if MEMORY_SEED_FILE else InMemoryObituaryStore()
            )
        except StorageError as e:
            logger.critical(f"Could not load the in-memory records: {e}", exc_info=True)
            sys.exit(1)
    else:
        try:
            await connect_to_mongo()
            app.state.obituary_store = MongoObituaryStore(db.client)
        except PyMongoError as e:
            logger.critical(f"Could not connect to the database on startup: {e}", exc_info=True)
            # Exit with a non-zero status code to tell Docker the container failed
            sys.exit(1)

    yield
    await close_mongo_connection()
    logger.info("--- Application Shutting Down ---")

app = FastAPI(
    title="Obituary Search API",
    description="Faceted search over genealogical obituary records.",
    version="1.0.0",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)


# MIDDLEWARE CONFIGURATION

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(CorrelationIdMiddleware)

@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """
    Global middleware to handle logging and uncaught exceptions.
    """
    start_time = time.time()
    logger.info(
        "Request received",
        extra={"method": request.method, "url": str(request.url)}
    )
    try:
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000
        logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "url": str(request.url),
                "status_code": response.status_code,
                "process_time_ms": f"{process_time:.2f}",
            },
        )
        return response
    except Exception as e:
        request_id = correlation_id.get() or str(uuid.uuid4())
        logger.critical(
            "Unhandled exception",
            extra={"method": request.method, "url": str(request.url), "error": str(e)},
            exc_info=True,
        )
        return ORJSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": "An unexpected error occurred.",
                "correlation_id": request_id,
            },
        )

#ROUTER INCLUSION
app.include_router(router)
