# app/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.db.database import connect_to_mongo, close_mongo_connection
from app.api.v1.routes import agents, convos, feed

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    # Permite todos los métodos (GET, POST, PUT, DELETE, etc.)
    allow_methods=["*"],
    allow_headers=["*"],  # Permite todos los encabezados
)

# Incluir las rutas de los endpoints
app.include_router(agents.router, prefix="/api/v1/agents", tags=["Agents"])
app.include_router(convos.router, prefix="/api/v1/convos", tags=["Convos"])
app.include_router(feed.router, prefix="/api/v1/feed", tags=["Feed"])


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    # Fallos del almacenamiento u otros imprevistos: sin reintentos
    logger.exception("Error en %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
async def ping():
    return {"message": "Pong"}


@app.on_event("startup")
async def startup_db_client():
    await connect_to_mongo()


@app.on_event("shutdown")
async def shutdown_db_client():
    await close_mongo_connection()
