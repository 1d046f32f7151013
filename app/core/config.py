# app/core/config.py
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Configuración general
    app_name: str = "Agent Pairing API"
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000"]

    # Configuración de MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "agent_pairing"
    mongo_tls: bool = False

    # Reglas de la conversación
    max_messages: int = 15
    feed_limit: int = 50
    leaderboard_limit: int = 10
    default_score: int = 50

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Instancia global para usar en toda la app
settings = Settings()
