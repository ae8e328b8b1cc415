"""
DrsHub Service Settings

Environment-aware settings for the resolver service. Every value can be set
through ``DRSHUB_*`` environment variables (nested models use double
underscores, e.g. ``DRSHUB_RETRY__MAX_ATTEMPTS=5``); provider hosts and Terra
service URLs default to the values of the selected deployment ``env``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import HttpClientConfig, RetryPolicy


class DeploymentEnv(str, Enum):
    """Terra deployment environments."""

    DEV = "dev"
    STAGING = "staging"
    ALPHA = "alpha"
    PERF = "perf"
    QA = "qa"
    PROD = "prod"
    MOCK = "mock"
    CROMWELL_DEV = "cromwell-dev"


class LogFormat(str, Enum):
    """Log output format."""

    JSON = "json"
    TEXT = "text"


MOCK_DRS_HOST = "wb-mock-drs-dev.storage.googleapis.com"
PASSPORT_TEST_HOST = "ctds-test-env.planx-pla.net"


@dataclass(frozen=True)
class ProviderHosts:
    """Resolved host names for every DRS provider in one deployment."""

    bio_data_catalyst_prod: str
    bio_data_catalyst_staging: str
    the_anvil: str
    terra_data_repo: str
    crdc: str
    kids_first: str
    passport_test: str
    mock_drs: str


class DrsHubSettings(BaseSettings):
    """Top-level service settings."""

    model_config = SettingsConfigDict(
        env_prefix="DRSHUB_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    env: DeploymentEnv = Field(DeploymentEnv.DEV, description="Terra deployment environment")

    bio_data_catalyst_prod_host: Optional[str] = Field(None, description="BDC prod host override")
    bio_data_catalyst_staging_host: Optional[str] = Field(
        None, description="BDC staging host override"
    )
    the_anvil_host: Optional[str] = Field(None, description="AnVIL Gen3 host override")
    terra_data_repo_host: Optional[str] = Field(None, description="Terra Data Repo host override")
    crdc_host: Optional[str] = Field(None, description="CRDC host override")
    kids_first_host: Optional[str] = Field(None, description="Kids First host override")
    passport_test_host: Optional[str] = Field(None, description="Passport test host override")
    mock_drs_host: Optional[str] = Field(None, description="Mock DRS host override")

    bond_base_url: Optional[str] = Field(None, description="Bond base URL override")
    externalcreds_base_url: Optional[str] = Field(
        None, description="Externalcreds base URL override"
    )
    sam_base_url: Optional[str] = Field(None, description="Sam base URL override")

    pencils_down_seconds: float = Field(
        58.0, description="Deadline for one resolution, in seconds", gt=0
    )
    cancel_on_deadline: bool = Field(
        True, description="Cancel calls still pending at the deadline"
    )
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    http: HttpClientConfig = Field(default_factory=HttpClientConfig)

    passport_client_cert_secret: Optional[str] = Field(
        None, description="Secret Manager version holding the passport mTLS certificate"
    )
    passport_client_key_secret: Optional[str] = Field(
        None, description="Secret Manager version holding the passport mTLS key"
    )
    signed_url_ttl_seconds: int = Field(3600, description="Signed URL lifetime", gt=0)

    log_level: str = Field("INFO", description="Logging level")
    log_format: LogFormat = Field(LogFormat.JSON, description="Structured JSON or plain text")

    @field_validator("bond_base_url", "externalcreds_base_url", "sam_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    # ------------------------------------------------------------------
    # Environment-derived values
    # ------------------------------------------------------------------

    @property
    def is_prod(self) -> bool:
        return self.env is DeploymentEnv.PROD

    @property
    def terra_env(self) -> str:
        """Environment name used in Terra service host names."""
        if self.env in (DeploymentEnv.MOCK, DeploymentEnv.CROMWELL_DEV):
            return DeploymentEnv.DEV.value
        return self.env.value

    @property
    def hosts(self) -> ProviderHosts:
        prod = self.is_prod
        return ProviderHosts(
            bio_data_catalyst_prod=self.bio_data_catalyst_prod_host
            or "gen3.biodatacatalyst.nhlbi.nih.gov",
            bio_data_catalyst_staging=self.bio_data_catalyst_staging_host
            or "staging.gen3.biodatacatalyst.nhlbi.nih.gov",
            the_anvil=self.the_anvil_host
            or ("gen3.theanvil.io" if prod else "staging.theanvil.io"),
            terra_data_repo=self.terra_data_repo_host
            or ("data.terra.bio" if prod else "jade.datarepo-dev.broadinstitute.org"),
            crdc=self.crdc_host
            or ("nci-crdc.datacommons.io" if prod else "nci-crdc-staging.datacommons.io"),
            kids_first=self.kids_first_host
            or ("data.kidsfirstdrc.org" if prod else "gen3staging.kidsfirstdrc.org"),
            passport_test=self.passport_test_host or PASSPORT_TEST_HOST,
            mock_drs=self.mock_drs_host or MOCK_DRS_HOST,
        )

    @property
    def bond_url(self) -> str:
        if self.bond_base_url:
            return self.bond_base_url
        if self.env is DeploymentEnv.MOCK:
            return "http://127.0.0.1:8080"
        return f"https://broad-bond-{self.terra_env}.appspot.com"

    @property
    def externalcreds_url(self) -> str:
        return (
            self.externalcreds_base_url
            or f"https://externalcreds.dsde-{self.terra_env}.broadinstitute.org"
        )

    @property
    def sam_url(self) -> str:
        return self.sam_base_url or f"https://sam.dsde-{self.terra_env}.broadinstitute.org"


__all__ = [
    "DeploymentEnv",
    "DrsHubSettings",
    "LogFormat",
    "MOCK_DRS_HOST",
    "PASSPORT_TEST_HOST",
    "ProviderHosts",
]
