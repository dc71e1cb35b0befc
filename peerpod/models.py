from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class WriteFile(BaseModel):
    """A single cloud-config write_files entry."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: StrictStr
    content: StrictStr = ""

    @field_validator("content", mode="before")
    @classmethod
    def null_content_is_empty(cls, v):
        # `content:` with no value; numbers and booleans stay rejected
        return "" if v is None else v


class CloudConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    write_files: List[WriteFile] = Field(default_factory=list)

    @field_validator("write_files", mode="before")
    @classmethod
    def null_write_files_is_empty(cls, v):
        return [] if v is None else v


class DaemonConfig(BaseModel):
    """
    The part of the forwarder daemon config the provisioner cares about.

    Everything apart from the embedded registry auth payload is written
    to disk untouched, so unknown keys are accepted and ignored here.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    auth_json: Optional[StrictStr] = Field(default=None, alias="auth-json")


class InitData(BaseModel):
    algorithm: StrictStr
    version: StrictStr
    data: Dict[str, str] = Field(default_factory=dict)

    def to_toml_dict(self) -> dict:
        """Dictionary ready for toml serialization, omitting empty data."""
        result = {"algorithm": self.algorithm, "version": self.version}
        if self.data:
            result["data"] = dict(self.data)
        return result


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one fetch-and-validate attempt."""

    cloud_config: Optional[CloudConfig] = None
    error: Optional[Exception] = None
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.cloud_config is not None

    @classmethod
    def success(cls, cloud_config: CloudConfig) -> "FetchOutcome":
        return cls(cloud_config=cloud_config)

    @classmethod
    def retry(cls, error: Exception) -> "FetchOutcome":
        return cls(error=error, retryable=True)

    @classmethod
    def fatal(cls, error: Exception) -> "FetchOutcome":
        return cls(error=error, retryable=False)


@dataclass
class ProvisionReport:
    """What a provisioning run did, for operators and callers."""

    provider: Optional[str] = None
    written_files: List[Path] = field(default_factory=list)
    digest: Optional[str] = None

    @property
    def provisioned(self) -> bool:
        return self.provider is not None
