"""Configuration models and loading for DrsHub."""

from .loader import CONFIG_FILE_ENV, load_settings
from .models import HttpClientConfig, RetryPolicy
from .settings import (
    MOCK_DRS_HOST,
    PASSPORT_TEST_HOST,
    DeploymentEnv,
    DrsHubSettings,
    LogFormat,
    ProviderHosts,
)

__all__ = [
    "CONFIG_FILE_ENV",
    "DeploymentEnv",
    "DrsHubSettings",
    "HttpClientConfig",
    "LogFormat",
    "MOCK_DRS_HOST",
    "PASSPORT_TEST_HOST",
    "ProviderHosts",
    "RetryPolicy",
    "load_settings",
]
