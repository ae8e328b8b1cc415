"""
Pydantic v2 Configuration Models for DrsHub

Nested policy models used by :class:`DrsHub.config.settings.DrsHubSettings`:
- HTTP client settings (timeouts, pool limits, TLS)
- Retry and backoff policy for outbound calls

All models use extra="forbid" for strict validation.
"""

from __future__ import annotations

from typing import ClassVar, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# Retry Policy
# ============================================================================


def _default_retry_statuses() -> List[int]:
    # Transient server errors plus explicit rate limiting.
    return list(range(500, 511)) + [429]


class RetryPolicy(BaseModel):
    """Configuration for outbound retry with exponential backoff."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=3, description="Total attempts (initial + retries)")
    initial_delay_s: float = Field(default=0.5, description="Delay before the first retry")
    multiplier: float = Field(default=2.0, description="Backoff growth factor")
    retry_statuses: List[int] = Field(
        default_factory=_default_retry_statuses,
        description="HTTP status codes that trigger a retry",
    )

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be >= 1")
        return v

    @field_validator("initial_delay_s")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("initial_delay_s must be >= 0")
        return v

    @field_validator("multiplier")
    @classmethod
    def validate_multiplier(cls, v: float) -> float:
        if v < 1:
            raise ValueError("multiplier must be >= 1")
        return v


# ============================================================================
# HTTP Client
# ============================================================================


class HttpClientConfig(BaseModel):
    """Configuration for the shared ``httpx.AsyncClient``."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    user_agent: str = Field(default="DrsHub/0.1", description="User-Agent string")
    timeout_connect_s: float = Field(default=10.0, description="Connection timeout in seconds")
    timeout_read_s: float = Field(default=60.0, description="Read timeout in seconds")
    verify_tls: bool = Field(default=True, description="Verify TLS certificates")
    max_connections: int = Field(default=100, description="Connection pool size")
    max_keepalive_connections: int = Field(default=20, description="Idle connections kept")

    @field_validator("timeout_connect_s", "timeout_read_s")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be > 0")
        return v

    @field_validator("max_connections", "max_keepalive_connections")
    @classmethod
    def validate_pool(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Pool sizes must be > 0")
        return v


__all__ = ["HttpClientConfig", "RetryPolicy"]
