"""
Pydantic models for request/response schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from lockout.admin import AccountStatus, LockoutStatistics
from lockout.errors import ValidationError


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InputClaims(CamelModel):
    """Claims posted by the identity provider for a sign-in attempt."""

    sign_in_name: str | None = None
    object_id: str | None = None

    @property
    def is_success(self) -> bool:
        """objectId is only sent once the credentials were accepted."""
        return bool(self.object_id)

    @classmethod
    def parse(cls, raw: bytes) -> InputClaims:
        """Parse a raw request body, raising ValidationError on bad input."""
        if not raw or not raw.strip():
            raise ValidationError("Request content is empty")
        try:
            claims = cls.model_validate_json(raw)
        except PydanticValidationError as exc:
            raise ValidationError("Cannot deserialize input claims") from exc
        if not claims.sign_in_name or not claims.sign_in_name.strip():
            raise ValidationError("Username is null or empty")
        return claims


class B2CResponse(CamelModel):
    """Response body understood by the identity provider's REST profile."""

    version: str = "1.0.0"
    status: int
    status_code: int
    user_message: str
    message: str
    developer_message: str | None = None
    retry_after_seconds: int | None = None

    @classmethod
    def build(
        cls,
        status_code: int,
        message: str,
        developer_message: str | None = None,
        retry_after_seconds: int | None = None,
    ) -> B2CResponse:
        return cls(
            status=status_code,
            status_code=status_code,
            user_message=message,
            message=message,
            developer_message=developer_message,
            retry_after_seconds=retry_after_seconds,
        )

    def to_content(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AccountStatusResponse(CamelModel):
    """Lockout status of a single account."""

    user_name: str
    failed_attempts: int
    is_locked: bool
    last_failed_attempt: datetime
    lockout_start_time: datetime | None = None
    remaining_lockout_time: float = Field(
        default=0.0,
        description="Seconds until the lock lifts (0 if not locked)",
    )

    @classmethod
    def from_status(cls, status: AccountStatus) -> AccountStatusResponse:
        record = status.record
        return cls(
            user_name=record.username,
            failed_attempts=record.failed_attempts,
            is_locked=record.locked,
            last_failed_attempt=record.last_failed_attempt_at,
            lockout_start_time=record.lockout_started_at,
            remaining_lockout_time=status.remaining_lockout_seconds,
        )


class StatisticsResponse(CamelModel):
    """Aggregate lockout counts."""

    total_accounts: int
    locked_accounts: int
    active_accounts: int
    recent_failed_attempts: int
    lockout_threshold: int
    lockout_duration_minutes: float
    timestamp: datetime

    @classmethod
    def from_statistics(cls, stats: LockoutStatistics) -> StatisticsResponse:
        return cls(
            total_accounts=stats.total_accounts,
            locked_accounts=stats.locked_accounts,
            active_accounts=stats.active_accounts,
            recent_failed_attempts=stats.recent_failed_attempts,
            lockout_threshold=stats.lockout_threshold,
            lockout_duration_minutes=stats.lockout_duration_minutes,
            timestamp=stats.timestamp,
        )


class HealthResponse(CamelModel):
    status: str
    timestamp: datetime
    service: str
    version: str


class MessageResponse(CamelModel):
    message: str
    removed: int | None = None
