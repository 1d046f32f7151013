import logging

from motor.motor_asyncio import AsyncIOMotorClient
import certifi
# Importar las configuraciones desde config.py
from app.core.config import settings
from app.db.store import ASCENDING, DESCENDING, MongoStore, Store

logger = logging.getLogger(__name__)

AGENTS = "agents"
CONVOS = "convos"
MATCHES = "matches"
FEED = "feed"
STATS = "stats"

client_options = {"tlsCAFile": certifi.where()} if settings.mongo_tls else {}
client = AsyncIOMotorClient(settings.mongo_uri, **client_options)
db = client[settings.mongo_db_name]
store = MongoStore(db)


async def connect_to_mongo():
    try:
        await client.admin.command("ping")
        logger.info("Conectado a MongoDB en %s", settings.mongo_db_name)
    except Exception:
        logger.exception("Error conectándose a MongoDB")
        return
    # La cola FIFO se consulta por (status, last_seen)
    await db[AGENTS].create_index([("status", ASCENDING), ("last_seen", ASCENDING)])
    await db[CONVOS].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    await db[FEED].create_index("convo_id")
    await db[FEED].create_index([("created_at", DESCENDING)])
    await db[MATCHES].create_index("convo_id", unique=True)


async def close_mongo_connection():
    client.close()


def get_store() -> Store:
    """Dependencia de FastAPI; los tests la sustituyen por un InMemoryStore."""
    return store
