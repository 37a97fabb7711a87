# app/core/middleware.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import time
import logging

from app.config.settings import settings

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    """IP del cliente, respetando el primer salto de X-Forwarded-For"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def setup_middleware(app: FastAPI):
    """CORS para el frontend y log de acceso con tiempo de respuesta"""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Idempotency-Key"],
        expose_headers=["X-Process-Time"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"💥 {request.method} {request.url.path} falló sin respuesta")
            raise

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        message = (
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Client: {client_ip(request)} - "
            f"Time: {process_time:.4f}s"
        )
        if response.status_code >= 500:
            logger.warning(message)
        else:
            logger.info(message)

        return response
