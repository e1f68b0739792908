# notify_relay/settings.py
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Service
    SERVICE_NAME: str = "notification-relay"
    ENV: str = "dev"
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # Restricted mode: no publish/push, no broker, scripted notifications only
    DEMO_MODE: bool = False
    PROJECT_ID: Optional[str] = None

    # RabbitMQ (unset URL => local mode, direct publish broadcasts in-process)
    RABBITMQ_URL: Optional[str] = None
    RABBITMQ_EXCHANGE: str = "notifications"
    RABBITMQ_EXCHANGE_TYPE: str = "topic"
    RABBITMQ_QUEUE: str = "notifications-sub"
    RABBITMQ_BINDINGS: List[str] = ["notification.#"]
    RABBITMQ_ROUTING_KEY: str = "notification.created"
    RABBITMQ_CONNECT_ATTEMPTS: int = 3
    RABBITMQ_PREFETCH: int = 64

    # HTTP / SSE
    CORS_ALLOW_ORIGINS: List[str] = ["*"]
    SSE_QUEUE_SIZE: int = 256
    SSE_HEARTBEAT_SECONDS: float = 15.0

    # Demo playback timing (seconds from connection open)
    DEMO_WELCOME_DELAY_SECONDS: float = 1.0
    DEMO_FIRST_DELAY_SECONDS: float = 3.0
    DEMO_INTERVAL_SECONDS: float = 5.0


settings = Settings()
