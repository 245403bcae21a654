from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    CUSTOMER_EVENTS_TOPIC,
    DEFAULT_DEMO_REMINDER_DELAY,
    DEFAULT_DISCOUNT_VALID_DAYS,
    DEFAULT_MAX_DELIVERY_DELAY,
    DEFAULT_MIN_DELIVERY_DELAY,
    DEFAULT_NOTIFICATION_HISTORY,
    DEFAULT_REMINDER_DELAY,
    EMAIL_NOTIFICATIONS_TOPIC,
    WORKFLOW_TRIGGERS_TOPIC,
)


class RedisConfig(BaseModel):
    """Configuration for Redis transport."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class KafkaConfig(BaseModel):
    """Configuration for Kafka transport."""

    brokers: List[str] = Field(default_factory=lambda: ["localhost:9092"])
    client_id: str = "journeyflow"
    group_id: str = "customer-journey-workflow"
    dlq_topic: str = "journeyflow.deadletter"


class TransportConfig(BaseModel):
    """Transport configuration settings."""

    backend: Literal["inmemory", "redis", "kafka"] = "inmemory"
    fallback_to_inmemory: bool = True
    redis: RedisConfig = Field(default_factory=RedisConfig)
    kafka: KafkaConfig = Field(default_factory=KafkaConfig)


class TopicsConfig(BaseModel):
    """Topic names used for event routing."""

    customer_events: str = CUSTOMER_EVENTS_TOPIC
    workflow_triggers: str = WORKFLOW_TRIGGERS_TOPIC
    email_notifications: str = EMAIL_NOTIFICATIONS_TOPIC


class WorkflowConfig(BaseModel):
    """Timing and retry settings for the workflow engine."""

    reminder_delay: float = DEFAULT_REMINDER_DELAY
    demo_mode: bool = False
    demo_reminder_delay: float = DEFAULT_DEMO_REMINDER_DELAY
    dispatch_retries: int = 0

    @property
    def quiet_period(self) -> float:
        """Seconds of inactivity before the reminder step is triggered."""
        return self.demo_reminder_delay if self.demo_mode else self.reminder_delay


class NotificationConfig(BaseModel):
    """Settings for the simulated email delivery."""

    min_delivery_delay: float = DEFAULT_MIN_DELIVERY_DELAY
    max_delivery_delay: float = DEFAULT_MAX_DELIVERY_DELAY
    discount_valid_days: int = DEFAULT_DISCOUNT_VALID_DAYS
    history_size: int = DEFAULT_NOTIFICATION_HISTORY


class ServerConfig(BaseModel):
    """HTTP server binding."""

    host: str = "0.0.0.0"
    port: int = 3000


class JourneyConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = Field(default_factory=TransportConfig)
    topics: TopicsConfig = Field(default_factory=TopicsConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: str = "INFO"
    log_file: Optional[str] = None


def _env_flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _apply_env_overrides(config: JourneyConfig) -> JourneyConfig:
    backend = os.getenv("JOURNEYFLOW_TRANSPORT")
    if backend:
        config.transport.backend = backend.lower()  # type: ignore[assignment]

    demo_mode = os.getenv("DEMO_MODE")
    if demo_mode is not None:
        config.workflow.demo_mode = _env_flag(demo_mode)

    reminder_ms = os.getenv("WORKFLOW_REMINDER_DELAY_MS")
    if reminder_ms:
        config.workflow.demo_reminder_delay = int(reminder_ms) / 1000.0

    brokers = os.getenv("KAFKA_BROKERS")
    if brokers:
        config.transport.kafka.brokers = [
            broker.strip() for broker in brokers.split(",") if broker.strip()
        ]
    config.transport.kafka.client_id = os.getenv(
        "KAFKA_CLIENT_ID", config.transport.kafka.client_id
    )
    config.transport.kafka.group_id = os.getenv(
        "KAFKA_GROUP_ID", config.transport.kafka.group_id
    )

    config.topics.customer_events = os.getenv(
        "KAFKA_TOPIC_CUSTOMER_EVENTS", config.topics.customer_events
    )
    config.topics.workflow_triggers = os.getenv(
        "KAFKA_TOPIC_WORKFLOW_TRIGGERS", config.topics.workflow_triggers
    )
    config.topics.email_notifications = os.getenv(
        "KAFKA_TOPIC_EMAIL_NOTIFICATIONS", config.topics.email_notifications
    )

    port = os.getenv("PORT")
    if port:
        config.server.port = int(port)
    config.log_level = os.getenv("LOG_LEVEL", config.log_level).upper()
    return config


def load_config(path: Optional[str] = None) -> JourneyConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to JOURNEYFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("JOURNEYFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = JourneyConfig(**data)
    else:
        config = JourneyConfig()

    return _apply_env_overrides(config)
