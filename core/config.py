"""Application settings.

Settings come from environment variables, optionally seeded from a ``.env``
file at the repository root. Durations are given in milliseconds in the
environment (``SAP_TIMEOUT=30000``) and exposed in seconds on ``Settings``.

Usage:
    from core.config import get_settings, validate_settings

    settings = get_settings()
    validate_settings(settings, mode="live")
"""

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from core.errors import ConfigurationError

REPO_ROOT = Path(__file__).resolve().parents[1]

DEFAULTS: Dict[str, str] = {
    "LOG_LEVEL": "INFO",
    "LOG_FORMAT": "human",
    "SAP_TIMEOUT": "30000",
    "SAP_RETRIES": "3",
    "MIGRATION_MODE": "mock",
    "MIGRATION_BATCH_SIZE": "500",
    "MIGRATION_CONCURRENCY": "5",
    "EXTRACTION_CONCURRENCY": "5",
    "PROGRESS_HISTORY": "1000",
    "APP_NAME": "erp-forensics",
    "CONN_ENV_PREFIX": "SAP_CONN_",
}

RUN_MODES = ("mock", "live")

# Fields that must be set before a live run can talk to the default system
LIVE_REQUIRED = {
    "sap_base_url": "SAP_BASE_URL",
    "sap_username": "SAP_USERNAME",
    "sap_password": "SAP_PASSWORD",
}


class Settings(BaseModel):
    """Resolved runtime settings."""
    model_config = ConfigDict(frozen=True)

    log_level: str = Field("INFO", description="Root logging level")
    log_format: str = Field("human", description="'json' or 'human'")
    app_name: str = Field("erp-forensics", description="Application name")

    sap_base_url: Optional[str] = Field(None, description="Default SAP gateway URL")
    sap_username: Optional[str] = Field(None, description="Default SAP user")
    sap_password: Optional[str] = Field(None, description="Default SAP password")
    sap_client: Optional[str] = Field(None, description="SAP client (mandant)")
    sap_timeout: float = Field(30.0, description="Remote call timeout, seconds")
    sap_retries: int = Field(3, description="Retry budget for remote calls")

    migration_mode: str = Field("mock", description="'mock' or 'live'")
    migration_batch_size: int = Field(500, description="Records per target load batch")
    migration_concurrency: int = Field(5, description="Objects run concurrently inside one wave")
    extraction_concurrency: int = Field(5, description="Extractors run concurrently")
    progress_history: int = Field(1000, description="Progress bus history cap")

    conn_env_prefix: str = Field("SAP_CONN_", description="Env prefix for connection profiles")
    checkpoint_dir: Optional[str] = Field(None, description="Directory for extraction checkpoints")
    audit_dir: Optional[str] = Field(None, description="Directory for the JSON audit trail")

    @property
    def json_logs(self) -> bool:
        return self.log_format.lower() == "json"


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load a ``.env`` file if it exists. Existing env vars win."""
    env_path = path or REPO_ROOT / ".env"
    if env_path.exists():
        return load_dotenv(env_path)
    return False


def load_settings(environ: Optional[Mapping[str, str]] = None, env_file: Optional[Path] = None) -> Settings:
    """Build settings from ``environ`` (default: process env after .env load)."""
    if environ is None:
        load_env_file(env_file)
        environ = os.environ

    def value(name: str) -> Optional[str]:
        raw = environ.get(name)
        if raw is None or raw == "":
            return DEFAULTS.get(name)
        return raw

    def number(name: str) -> int:
        raw = value(name)
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be an integer, got {raw!r}", details={"variable": name})

    mode = (value("MIGRATION_MODE") or "mock").lower()
    if mode not in RUN_MODES:
        raise ConfigurationError(
            f"MIGRATION_MODE must be one of {RUN_MODES}, got {mode!r}",
            details={"variable": "MIGRATION_MODE"},
        )

    return Settings(
        log_level=value("LOG_LEVEL"),
        log_format=value("LOG_FORMAT"),
        app_name=value("APP_NAME"),
        sap_base_url=value("SAP_BASE_URL"),
        sap_username=value("SAP_USERNAME"),
        sap_password=value("SAP_PASSWORD"),
        sap_client=value("SAP_CLIENT"),
        sap_timeout=number("SAP_TIMEOUT") / 1000.0,
        sap_retries=number("SAP_RETRIES"),
        migration_mode=mode,
        migration_batch_size=number("MIGRATION_BATCH_SIZE"),
        migration_concurrency=number("MIGRATION_CONCURRENCY"),
        extraction_concurrency=number("EXTRACTION_CONCURRENCY"),
        progress_history=number("PROGRESS_HISTORY"),
        conn_env_prefix=value("CONN_ENV_PREFIX"),
        checkpoint_dir=value("CHECKPOINT_DIR"),
        audit_dir=value("AUDIT_DIR"),
    )


def validate_settings(settings: Settings, mode: Optional[str] = None) -> List[str]:
    """Check settings for a run mode.

    Returns a list of warnings. Raises ConfigurationError when a live run
    lacks required connection fields.
    """
    mode = mode or settings.migration_mode
    warnings: List[str] = []

    if settings.migration_batch_size < 1:
        raise ConfigurationError("MIGRATION_BATCH_SIZE must be positive")
    if settings.migration_concurrency < 1 or settings.extraction_concurrency < 1:
        raise ConfigurationError("Concurrency settings must be positive")

    if mode == "live":
        missing = [env for field, env in LIVE_REQUIRED.items() if not getattr(settings, field)]
        if missing:
            raise ConfigurationError(
                f"Live mode requires: {', '.join(missing)}",
                details={"missing": missing, "mode": mode},
            )
        if not settings.sap_client:
            warnings.append("SAP_CLIENT not set; the system default client will be used")
    return warnings


_settings: Optional[Settings] = None


def get_settings(reload: bool = False) -> Settings:
    """Process-wide settings, loaded on first use."""
    global _settings
    if _settings is None or reload:
        _settings = load_settings()
    return _settings
