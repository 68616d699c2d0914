"""Application configuration."""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


GOOGLE_NEWS_SEARCH_URL = "https://news.google.com/rss/search"


def split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class FeedSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    search_url: str = GOOGLE_NEWS_SEARCH_URL
    language: str = "ja"
    regions: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["JP"])
    timeout_seconds: float = Field(20.0, ge=1.0, le=120.0)
    max_attempts: int = Field(3, ge=1, le=10)
    retry_base_delay_seconds: float = Field(1.0, ge=0.0, le=60.0)
    request_delay_seconds: float = Field(1.0, ge=0.0, le=5.0)
    freshness_hours: int = Field(24, ge=1, le=720)

    @field_validator("regions", mode="before")
    @classmethod
    def parse_regions(cls, value: Any) -> Any:
        return split_csv(value)

    @field_validator("regions")
    @classmethod
    def default_regions(cls, value: list[str]) -> list[str]:
        regions = [item.strip().upper() for item in value if item.strip()]
        return regions or ["JP"]

    @field_validator("language")
    @classmethod
    def default_language(cls, value: str) -> str:
        return value.strip() or "ja"


class DedupSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    memory_seed_size: int = Field(2000, ge=0, le=50000)
    cache_ttl_seconds: int = Field(21600, ge=60, le=7 * 86400)


class ReputationSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    min_ratings: int = Field(2, ge=1)
    block_below: float = Field(2.0, ge=1.0, le=5.0)
    lookback_rows: int = Field(3000, ge=1, le=100000)


class CampaignSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    keywords: Annotated[list[str], NoDecode]
    start_date: date
    end_date: date
    notify_address: str | None = None

    @field_validator("keywords", mode="before")
    @classmethod
    def parse_keywords(cls, value: Any) -> Any:
        return split_csv(value)

    @field_validator("keywords")
    @classmethod
    def drop_blank_keywords(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item.strip()]

    @field_validator("notify_address")
    @classmethod
    def blank_address_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def validate_range(self) -> CampaignSettings:
        if self.end_date < self.start_date:
            raise ValueError(f"campaign {self.name!r}: end_date is before start_date")
        return self

    def is_active(self, today: date) -> bool:
        return self.start_date <= today <= self.end_date


class DigestSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_items_per_group: int = Field(3, ge=1, le=50)
    fallback_group_label: str = "Other"
    recipients: Annotated[list[str], NoDecode] = Field(default_factory=list)
    user_name: str = "User"
    subject_prefix: str = "News"
    unsent_read_limit: int = Field(500, ge=1, le=10000)

    @field_validator("recipients", mode="before")
    @classmethod
    def parse_recipients(cls, value: Any) -> Any:
        return split_csv(value)


class MailSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str | None = None
    port: int = Field(465, ge=1, le=65535)
    username: str | None = None
    password: str | None = None
    from_address: str | None = None
    from_name: str = "News Agent"
    use_ssl: bool = True
    timeout_seconds: float = Field(20.0, ge=1.0, le=120.0)


class AlertSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_rating: int = Field(4, ge=1, le=5)
    webhook_url: str | None = None
    telegram_chat_id: int | None = None
    telegram_topic_id: int | None = None
    timeout_seconds: float = Field(10.0, ge=1.0, le=60.0)

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            return None
        parsed = urlparse(text)
        if parsed.scheme in {"http", "https"} and parsed.netloc:
            return text
        raise ValueError("webhook_url must be a valid http(s) URL")


class SchedulerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    timezone: str = "Asia/Tokyo"
    ingestion_interval_seconds: int = Field(3600, ge=60)
    delivery_hours: Annotated[list[int], NoDecode] = Field(default_factory=lambda: [7])
    poll_interval_seconds: int = Field(60, ge=1, le=3600)
    lock_timeout_seconds: float = Field(30.0, gt=0.0, le=600.0)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("delivery_hours", mode="before")
    @classmethod
    def parse_delivery_hours(cls, value: Any) -> Any:
        if isinstance(value, int):
            return [value]
        return split_csv(value)

    @field_validator("delivery_hours")
    @classmethod
    def validate_delivery_hours(cls, value: list[int]) -> list[int]:
        for hour in value:
            if not 0 <= hour <= 23:
                raise ValueError(f"delivery hour out of range: {hour}")
        return sorted(set(value)) or [7]


class HealthSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = Field(8080, ge=1, le=65535)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        env_prefix="",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    database_url: str = Field(..., validation_alias="DATABASE_URL")
    bot_token: str | None = Field(default=None, validation_alias="BOT_TOKEN")
    admin_user_id: int | None = Field(default=None, validation_alias="ADMIN_USER_ID")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    sentry_dsn: str | None = Field(default=None, validation_alias="SENTRY_DSN")

    keywords: Annotated[list[str], NoDecode] = Field(default_factory=list)
    campaigns: list[CampaignSettings] = Field(default_factory=list)

    feed: FeedSettings = FeedSettings()
    dedup: DedupSettings = DedupSettings()
    reputation: ReputationSettings = ReputationSettings()
    digest: DigestSettings = DigestSettings()
    mail: MailSettings = MailSettings()
    alerts: AlertSettings = AlertSettings()
    scheduler: SchedulerSettings = SchedulerSettings()
    health: HealthSettings = HealthSettings()

    @field_validator("keywords", mode="before")
    @classmethod
    def parse_keywords(cls, value: Any) -> Any:
        return split_csv(value)

    @field_validator("keywords")
    @classmethod
    def drop_blank_keywords(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item.strip()]

    @property
    def bot_enabled(self) -> bool:
        return bool(self.bot_token) and self.admin_user_id is not None

    def public_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        if data.get("bot_token"):
            data["bot_token"] = "***"
        if data["mail"].get("password"):
            data["mail"]["password"] = "***"
        if data["alerts"].get("webhook_url"):
            data["alerts"]["webhook_url"] = "***"
        return data
