"""MongoDB connection and Beanie document registration."""
import logging

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from app.config import settings
from app.models import AttendanceSheet, Group, User

logger = logging.getLogger(__name__)

# AttendanceSheet brings the unique (group, date) index
DOCUMENT_MODELS = [User, Group, AttendanceSheet]

_client = None


async def init_models(database) -> None:
    """Register the document models on `database` and build their indexes."""
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)


async def db_startup():
    """Connect, make sure the server answers, then register the models.

    Raises ServerSelectionTimeoutError when MongoDB cannot be reached within
    `settings.mongodb_timeout_ms`.
    """
    global _client
    _client = AsyncIOMotorClient(settings.mongodb_url, serverSelectionTimeoutMS=settings.mongodb_timeout_ms)
    await _client.admin.command("ping")
    await init_models(_client[settings.mongodb_db_name])
    logger.info("Connected to MongoDB database %s", settings.mongodb_db_name)


async def db_shutdown():
    """Close MongoDB connection."""
    global _client
    if _client:
        _client.close()
        _client = None
