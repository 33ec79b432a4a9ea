"""Shared service exports."""

from .audit import AuditStore, Deliverable, merge_workflow_listing
from .config_store import ConfigStore, ConfigSummary, InvalidConfigNameError
from .provider_keys import PROVIDERS, UnknownProviderError, verify_api_key
from .settings_store import SettingsService, mask_api_key

__all__ = [
    "AuditStore",
    "Deliverable",
    "merge_workflow_listing",
    "ConfigStore",
    "ConfigSummary",
    "InvalidConfigNameError",
    "PROVIDERS",
    "UnknownProviderError",
    "verify_api_key",
    "SettingsService",
    "mask_api_key",
]
