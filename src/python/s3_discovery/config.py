"""Configuration model and loader for S3 cluster discovery."""

from __future__ import annotations

import enum
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

import boto3
import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_S3_ENDPOINT = "s3.amazonaws.com"
CONFIG_SECTION = "s3-discovery"


class AuthenticationType(str, enum.Enum):
    """How the S3 client obtains its credentials."""

    DEFAULT = "default"
    ENVIRONMENT_VARIABLES = "environment_variables"
    USER_CREDENTIALS_FILE = "user_credentials_file"
    INSTANCE_PROFILE_CREDENTIALS = "instance_profile_credentials"
    ACCESS_KEY = "access_key"
    TEMPORARY_SESSION = "temporary_session"


@lru_cache(maxsize=1)
def known_s3_regions() -> frozenset[str]:
    """Return every S3 region known to the installed botocore endpoint data."""
    session = boto3.session.Session()
    regions: set[str] = set()
    for partition in session.get_available_partitions():
        regions.update(session.get_available_regions("s3", partition_name=partition))
    return frozenset(regions)


class DiscoveryConfig(BaseModel):
    """Read-only settings of the discovery callback.

    Keys may be given in snake_case or in the kebab-case form used by
    the properties file (``s3-bucket-name``, ``file-expiration``, ...).
    Durations are in seconds.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    bucket_name: str = Field(..., alias="s3-bucket-name", description="Bucket holding the node records.")
    bucket_region: str = Field(..., alias="s3-bucket-region", description="Region of the bucket.")
    file_prefix: str = Field(default="", alias="file-prefix", description="Key prefix for all node records.")
    cluster_id: str = Field(default="default", alias="cluster-id", description="Logical cluster namespace.")
    file_expiration: float = Field(..., gt=0, alias="file-expiration", description="Record TTL.")
    update_interval: float = Field(..., gt=0, alias="update-interval", description="Re-announce interval.")
    endpoint: str = Field(default=DEFAULT_S3_ENDPOINT, alias="s3-endpoint")
    endpoint_region: Optional[str] = Field(default=None, alias="s3-endpoint-region")
    path_style_access: Optional[bool] = Field(default=None, alias="s3-path-style-access")
    credentials_type: AuthenticationType = Field(default=AuthenticationType.DEFAULT, alias="credentials-type")
    access_key_id: Optional[str] = Field(default=None, alias="credentials-access-key-id")
    secret_access_key: Optional[SecretStr] = Field(default=None, alias="credentials-secret-access-key")
    session_token: Optional[SecretStr] = Field(default=None, alias="credentials-session-token")
    credentials_profile: Optional[str] = Field(default=None, alias="credentials-profile")
    request_timeout: float = Field(default=5.0, gt=0, alias="request-timeout", description="Per store call.")
    discovery_timeout: float = Field(default=10.0, gt=0, alias="discovery-timeout", description="Per discovery query.")
    stop_timeout: float = Field(default=5.0, gt=0, alias="stop-timeout", description="Budget for graceful stop.")
    cleanup_expired: bool = Field(default=False, alias="cleanup-expired", description="Delete expired peer records.")

    @field_validator("bucket_name", "bucket_region", "cluster_id", "endpoint")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("cluster_id")
    @classmethod
    def _no_separator(cls, value: str) -> str:
        if "/" in value:
            raise ValueError("must not contain '/'")
        return value

    @field_validator("credentials_type", mode="before")
    @classmethod
    def _normalize_credentials_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> DiscoveryConfig:
        if self.update_interval >= self.file_expiration:
            raise ValueError(
                f"update-interval ({self.update_interval}s) must be smaller than "
                f"file-expiration ({self.file_expiration}s)"
            )
        if self.uses_default_endpoint and self.bucket_region not in known_s3_regions():
            raise ValueError(f"'{self.bucket_region}' is not a valid S3 region")
        if self.credentials_type in (AuthenticationType.ACCESS_KEY, AuthenticationType.TEMPORARY_SESSION):
            if not self.access_key_id or not self.access_key_id.strip():
                raise ValueError("credentials-access-key-id is required for credentials-type "
                                 f"'{self.credentials_type.value}'")
            if self.secret_access_key is None or not self.secret_access_key.get_secret_value().strip():
                raise ValueError("credentials-secret-access-key is required for credentials-type "
                                 f"'{self.credentials_type.value}'")
        if self.credentials_type == AuthenticationType.TEMPORARY_SESSION:
            if self.session_token is None or not self.session_token.get_secret_value().strip():
                raise ValueError("credentials-session-token is required for credentials-type 'temporary_session'")
        return self

    @property
    def uses_default_endpoint(self) -> bool:
        return self.endpoint == DEFAULT_S3_ENDPOINT

    @property
    def endpoint_url(self) -> str | None:
        """Endpoint URL override for S3-compatible stores, None for AWS."""
        if self.uses_default_endpoint:
            return None
        if "://" in self.endpoint:
            return self.endpoint
        return f"https://{self.endpoint}"

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> DiscoveryConfig:
        """Validate raw settings, raising :class:`ConfigError` on failure."""
        try:
            return cls.model_validate(dict(values))
        except ValidationError as exc:
            reasons = [
                f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}"
                for error in exc.errors()
            ]
            raise ConfigError(reasons=reasons) from exc


def load_config(config_path: Path | str) -> DiscoveryConfig:
    """Load and validate a YAML discovery configuration file.

    The settings may sit at the top level or under an
    ``s3-discovery`` section.
    """
    path = Path(config_path).expanduser()
    if not path.is_file():
        raise ConfigError(f"Could not find '{path}'. Please verify that the configuration file exists.")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not read configuration file '{path}': {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file '{path}' must contain a mapping.")
    section = raw.get(CONFIG_SECTION, raw)
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{CONFIG_SECTION}' in '{path}' must be a mapping.")

    config = DiscoveryConfig.from_mapping(section)
    logger.debug("Read discovery configuration from %s", path)
    return config
