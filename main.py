import time
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.projects import router as projects_router
from app.api.builds import router as builds_router
from app.api.deps import get_scheduler
from app.core.config import CORS_ORIGINS, HOST, LOG_DIR, LOG_LEVEL, PORT
from app.utils.logging_config import setup_logging

setup_logging(level=LOG_LEVEL, log_dir=LOG_DIR or None)
logger = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Only stop the pool if something actually created it
    if get_scheduler.cache_info().currsize:
        logger.info("Waiting for running builds to finish")
        get_scheduler().shutdown(wait=True)


app = FastAPI(title="Automat Build Server", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Logging Middleware
# ---------------------------------------------------------------------------
class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        logger.info("Incoming: %s %s from %s", request.method, request.url.path, client_host)

        try:
            response = await call_next(request)
            process_time = (time.time() - start_time) * 1000
            logger.info(
                "Outgoing: %s %s - Status: %d - Time: %.2fms",
                request.method, request.url.path, response.status_code, process_time,
            )
            return response
        except Exception as e:
            logger.error("Request failed: %s %s - Error: %s", request.method, request.url.path, e)
            raise


app.add_middleware(LoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    return {"status": "ok"}


app.include_router(projects_router)
app.include_router(builds_router)


def serve(host: str = HOST, port: int = PORT, reload: bool = False) -> None:
    uvicorn.run("main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    serve(reload=True)
