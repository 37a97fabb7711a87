# app/config/database.py
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from .settings import settings

logger = logging.getLogger(__name__)


def engine_options(database_url: str) -> dict:
    """Opciones del engine según el driver"""
    options = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "echo": settings.debug
    }
    # Los timeouts de la BD los impone el driver
    if database_url.startswith("postgresql"):
        options["connect_args"] = {"connect_timeout": settings.database_connect_timeout}
    elif database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    return options


engine = create_engine(settings.database_url, **engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Sesión por request; las tareas en segundo plano abren la suya"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Crear las tablas que falten a partir de los modelos"""
    from app.shared.database.models import Base

    Base.metadata.create_all(bind=bind or engine)
    logger.info("🗄️  Tablas verificadas")


def database_status(bind=None) -> str:
    try:
        with (bind or engine).connect() as connection:
            connection.execute(text("SELECT 1"))
        return "connected"
    except SQLAlchemyError as e:
        logger.warning(f"⚠️ Base de datos no disponible: {e}")
        return "unavailable"
