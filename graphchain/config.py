"""Configuration management for graphchain"""
import os
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Neo4j Configuration
    neo4j_uri: str = os.getenv("NEO4J_URI", "bolt://localhost:7687")
    neo4j_user: str = os.getenv("NEO4J_USER", "neo4j")
    neo4j_password: str = os.getenv("NEO4J_PASSWORD", "")
    neo4j_database: Optional[str] = os.getenv("NEO4J_DATABASE", None)

    # Query Configuration
    default_context: Optional[str] = None
    max_query_limit: Optional[int] = None

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="GRAPHCHAIN_",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
