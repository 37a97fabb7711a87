# app/main.py
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from app.config.settings import settings
from app.config.database import database_status
from app.core.middleware import setup_middleware
from app.api.v1.router import api_router
from app.shared.services.cloudinary_service import cloudinary_service

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"🚀 {settings.app_name} Starting...")
    logger.info(f"📍 Version: {settings.version}")
    logger.info(f"🌍 Environment: {'Development' if settings.debug else 'Production'}")
    logger.info(
        f"💶 Umbrales: team_lead ≤ {settings.team_lead_max_amount}, "
        f"division_manager ≤ {settings.division_manager_max_amount}"
    )
    logger.info(f"🗄️  Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'localhost'}")
    if not settings.smtp_configured:
        logger.warning("✉️  SMTP no configurado: las notificaciones solo se registran en el log")

    yield

    # Shutdown
    logger.info(f"🛑 {settings.app_name} Shutting down...")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Solicitudes de descuento con aprobación por niveles",
    docs_url="/docs",
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Setup middleware
setup_middleware(app)

# Include routers
app.include_router(api_router, prefix="/api/v1")

# Root endpoint
@app.get("/")
async def root():
    return {
        "message": f"🚀 {settings.app_name}",
        "version": settings.version,
        "status": "running",
        "environment": "production" if not settings.debug else "development",
        "docs": "/docs",
        "api": "/api/v1"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "database": database_status(),
        "version": settings.version,
        "app": settings.app_name,
        "photos": cloudinary_service.health_check()["status"] if cloudinary_service.configured else "disabled",
        "smtp": "configured" if settings.smtp_configured else "disabled"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
