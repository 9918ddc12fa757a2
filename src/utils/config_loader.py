"""
Configuration loader for the accident policy orchestrator.

Non-secret settings (endpoints, timeouts, bucket names, normalizer policy)
live in config/orchestrator.yml. Secrets come from the environment only and
are read through require_env().
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from src.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "orchestrator.yml"


class PartnerApiConfig(BaseModel):
    """Partner (insurer) HTTP API endpoints"""

    base_url: str = "https://services-stg.vsk.ru/ship/biz/sales/v2/"
    auth_url: str = "https://services-stg.vsk.ru/ship/token"
    legacy_pdf_url: str = "https://api.vsk.ru/v3/accident/policies/{policy}/pdf"
    timeout_seconds: float = Field(default=20.0, gt=0)
    token_retries: int = Field(default=3, ge=1, le=10)
    retry_backoff_seconds: float = Field(default=1.0, ge=0.0)
    client_id_env: str = "VSK_CLIENT_ID"
    client_secret_env: str = "VSK_CLIENT_SECRET"


class MetadataConfig(BaseModel):
    """Cloud metadata service used for the infra identity token"""

    token_url: str = "http://169.254.169.254/computeMetadata/v1/instance/service-accounts/default/token"
    flavor: str = "Google"
    timeout_seconds: float = Field(default=2.0, gt=0)
    token_ttl_seconds: float = Field(default=3600.0, gt=0)


class ObjectStorageConfig(BaseModel):
    endpoint: str = "https://storage.yandexcloud.net"
    region: str = "ru-central1"
    bucket: str = "your-bucket-name"
    folder: str = "policy-samples"
    url_ttl_seconds: int = Field(default=3600, ge=1)
    access_key_env: str = "S3_ACCESS_KEY"
    secret_key_env: str = "S3_SECRET_KEY"


class DatabaseConfig(BaseModel):
    endpoint_env: str = "DB_ENDPOINT"
    name_env: str = "DB_NAME"
    user: str = "orchestrator"
    driver: str = "postgresql+psycopg2"
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)


class NormalizerConfig(BaseModel):
    default_product_code: str = "ACCIDENT"
    subject_type: str = "individual"
    timezone: str = "Europe/Moscow"
    end_of_day: str = "23:59:59"
    utc_offset: str = "+03:00"
    minimum_sum_insured: int = 50000
    sum_insured_tiers: List[int] = Field(default_factory=lambda: [50000, 100000, 250000, 500000])
    zero_sum_insured: Literal["default", "reject"] = "default"


class ValidationConfig(BaseModel):
    enabled: bool = False


class OrchestratorConfig(BaseModel):
    partner_api: PartnerApiConfig = Field(default_factory=PartnerApiConfig)
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    object_storage: ObjectStorageConfig = Field(default_factory=ObjectStorageConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    normalizer: NormalizerConfig = Field(default_factory=NormalizerConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)


def load_orchestrator_config(config_path: Optional[Path] = None) -> OrchestratorConfig:
    """
    Load and validate orchestrator configuration from a YAML file

    Args:
        config_path: Path to config file. Defaults to config/orchestrator.yml;
            built-in defaults are used when the default file is absent.

    Returns:
        Validated OrchestratorConfig object

    Raises:
        ConfigError: If an explicit file is missing or the content is invalid
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
        if not config_path.exists():
            logger.warning("Config file %s not found, using built-in defaults", config_path)
            return OrchestratorConfig()

    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid orchestrator config {config_path}: expected a mapping")

    try:
        cfg = OrchestratorConfig(**data)
        logger.info("Successfully loaded orchestrator config from %s", config_path)
        return cfg
    except ValidationError as e:
        logger.error("Orchestrator config validation failed: %s", e)
        raise ConfigError(f"Invalid orchestrator config {config_path}: {e}") from e


def require_env(*names: str, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Return the named environment values or raise ConfigError naming every unset one."""
    env = os.environ if environ is None else environ
    missing = [name for name in names if not (env.get(name) or "").strip()]
    if missing:
        logger.error("Missing env: %s", ", ".join(missing))
        raise ConfigError(f"Missing env: {', '.join(missing)}", missing=missing)
    return {name: env[name].strip() for name in names}
