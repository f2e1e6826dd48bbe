# lambdas/alarm_log_notifier/models.py
"""
Settings and data models for the alarm log notifier.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# CloudWatch sends e.g. "2024-01-01T12:00:00.000+0000"
_STATE_CHANGE_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"


class AppSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings. A local .env file is read
    when present.

    The SLACK_* variables hold SSM Parameter Store paths, not the secrets.
    """
    model_config = SettingsConfigDict(
        env_file='.env', env_file_encoding='utf-8', extra='ignore', populate_by_name=True
    )
    aws_region: str = Field("us-east-1", alias='AWS_REGION')
    slack_token_parameter: str = Field("", alias='SLACK_TOKEN')
    slack_channel_parameter: str = Field("", alias='SLACK_CHANNEL')
    slack_signing_secret_parameter: str = Field("", alias='SLACK_SIGNING_SECRET')
    slack_api_url: str = Field("https://slack.com/api", alias='SLACK_API_URL')
    slack_timeout_seconds: float = Field(10, alias='SLACK_TIMEOUT_SECONDS')
    # "placeholder" keeps the static ErrorCode/API/Timestamp fields,
    # "parsed" reads them from the log line.
    log_field_mode: Literal["placeholder", "parsed"] = Field("placeholder", alias='LOG_FIELD_MODE')


def get_settings() -> AppSettings:
    """Builds settings from the current environment on every call."""
    return AppSettings()


def parse_state_change_time(value: str) -> datetime:
    """
    Parses an alarm StateChangeTime. Naive timestamps are taken as UTC.

    Raises:
        ValueError: If the value is not a recognisable ISO 8601 timestamp.
    """
    try:
        parsed = datetime.strptime(value, _STATE_CHANGE_TIME_FORMAT)
    except ValueError:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# Inbound payload
class AlarmTrigger(BaseModel):
    model_config = ConfigDict(frozen=True, extra='ignore')
    metric_name: str = Field(alias='MetricName')
    namespace: str = Field(alias='Namespace')


class AlarmNotification(BaseModel):
    """
    The alarm payload embedded in an SNS record's Message.
    """
    model_config = ConfigDict(frozen=True, extra='ignore')
    alarm_name: str = Field(alias='AlarmName')
    state_change_time: datetime = Field(alias='StateChangeTime')
    trigger: AlarmTrigger = Field(alias='Trigger')

    @field_validator('state_change_time', mode='before')
    @classmethod
    def _parse_state_change_time(cls, value):
        if isinstance(value, str):
            return parse_state_change_time(value)
        return value

    @property
    def metric_name(self) -> str:
        return self.trigger.metric_name

    @property
    def namespace(self) -> str:
        return self.trigger.namespace


# Log lookup
@dataclass(frozen=True)
class LogSource:
    log_group_name: str
    filter_pattern: str


@dataclass(frozen=True)
class LogQuery:
    """
    A time-windowed filter_log_events request against a single stream.
    """
    log_group_name: str
    filter_pattern: str
    log_stream_name: str
    start_time: datetime
    end_time: datetime
    limit: int = 10


@dataclass(frozen=True)
class LogEvent:
    message: str
    timestamp: int | None = None  # epoch millis
    log_stream_name: str | None = None
    event_id: str | None = None
    ingestion_time: int | None = None

    @classmethod
    def from_api(cls, raw: dict) -> "LogEvent":
        """Builds an event from one entry of filter_log_events()['events']."""
        return cls(
            message=raw.get("message", ""),
            timestamp=raw.get("timestamp"),
            log_stream_name=raw.get("logStreamName"),
            event_id=raw.get("eventId"),
            ingestion_time=raw.get("ingestionTime"),
        )


@dataclass(frozen=True)
class LogBundle:
    """
    Everything the composer needs about the logs behind one alarm.
    """
    alarm_name: str
    filter_pattern: str
    log_group_name: str
    log_stream_name: str
    events: tuple[LogEvent, ...] = ()


@dataclass(frozen=True)
class LogFields:
    """The per-event values shown in the attachment's field table."""
    timestamp: str
    error_code: int | None
    api: str | None


# Delivery
@dataclass(frozen=True)
class SlackCredentials:
    token: str = ""
    channel: str = ""
    signing_secret: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.token and self.channel and self.signing_secret)


@dataclass(frozen=True)
class Delivered:
    channel: str
    ts: str | None = None


@dataclass(frozen=True)
class Suppressed:
    """A failure that was logged instead of raised."""
    cause: Exception
    stage: Literal["credentials", "post"] = "post"
    event: LogEvent | None = field(default=None, compare=False)


DeliveryResult = Union[Delivered, Suppressed]
