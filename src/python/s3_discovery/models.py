"""Data models for S3 cluster discovery.

All models use Pydantic for validation and serialization.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator


# ── Enums ─────────────────────────────────────────────────────────


class AnnouncerState(str, enum.Enum):
    """Lifecycle state of the self-announcer."""

    STOPPED = "stopped"
    ANNOUNCING = "announcing"


class BucketStatus(str, enum.Enum):
    """Outcome of a bucket accessibility check."""

    EXISTING = "existing"
    NOT_EXISTING = "not_existing"
    NO_PERMISSION = "no_permission"
    OTHER = "other"

    @property
    def is_successful(self) -> bool:
        return self is BucketStatus.EXISTING

    @classmethod
    def from_status_code(cls, status_code: int | None) -> BucketStatus:
        if status_code == 200:
            return cls.EXISTING
        if status_code == 404:
            return cls.NOT_EXISTING
        if status_code == 403:
            return cls.NO_PERMISSION
        return cls.OTHER


# ── Node Models ───────────────────────────────────────────────────


class NodeAddress(BaseModel):
    """Transport address a peer dials for cluster formation."""

    model_config = ConfigDict(frozen=True)

    host: str
    """Host name or IP address."""

    port: int
    """TCP port."""

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


class NodeRecord(BaseModel):
    """Presence record of one node, stored as a single object.

    Unknown fields are ignored so that records written by newer
    versions remain readable.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    cluster_id: StrictStr = Field(min_length=1)
    """Logical cluster namespace."""

    node_id: StrictStr = Field(min_length=1)
    """Unique identifier of the announcing node."""

    host: StrictStr = Field(min_length=1)
    """Host peers should use to reach this node."""

    port: StrictInt = Field(ge=1, le=65535)
    """Port peers should use to reach this node."""

    expiration_epoch_millis: StrictInt = Field(gt=0)
    """Epoch millis after which the record is stale."""

    @field_validator("cluster_id", "node_id")
    @classmethod
    def _reject_separator(cls, value: str) -> str:
        if "/" in value:
            raise ValueError("must not contain '/'")
        return value

    @field_validator("host")
    @classmethod
    def _reject_blank_host(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @property
    def address(self) -> NodeAddress:
        return NodeAddress(host=self.host, port=self.port)

    def is_expired(self, now_millis: int) -> bool:
        """Check if this record is stale at ``now_millis``."""
        return self.expiration_epoch_millis <= now_millis
