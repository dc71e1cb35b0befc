"""
Configuration management for user-data provisioning using Pydantic.
"""

from typing import Annotated, List, Optional
from pathlib import Path
from pydantic import Field, field_validator, model_validator
import json
import os

from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_CONFIG_FILE = "/etc/peerpod/provision.json"
CONFIG_PARENT = Path("/run/peerpod")

# File names of the per-file paths when only the parent directory is given
DEFAULT_FILE_NAMES = {
    "agent_config_path": "agent-config.toml",
    "daemon_config_path": "daemon.json",
    "auth_json_path": "auth.json",
    "cdh_config_path": "cdh.toml",
    "aa_config_path": "aa.toml",
    "policy_path": "policy.rego",
    "digest_path": "checksum.txt",
    "initdata_meta_path": "initdata.meta",
    "initdata_toml_path": "initdata.toml",
}


class ProvisionConfig(BaseSettings):
    """Run parameters for a single provisioning run."""

    model_config = SettingsConfigDict(
        env_prefix="PEERPOD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    # Trusted root, every provisioned file must live below it
    parent_path: Path = CONFIG_PARENT
    fetch_timeout: float = Field(default=180, gt=0)

    # Files provisioned from user-data
    agent_config_path: Path = CONFIG_PARENT / "agent-config.toml"
    daemon_config_path: Path = CONFIG_PARENT / "daemon.json"
    auth_json_path: Path = CONFIG_PARENT / "auth.json"
    cdh_config_path: Path = CONFIG_PARENT / "cdh.toml"
    aa_config_path: Path = CONFIG_PARENT / "aa.toml"
    policy_path: Path = CONFIG_PARENT / "policy.rego"

    # Initdata
    digest_path: Path = CONFIG_PARENT / "checksum.txt"
    initdata_meta_path: Path = CONFIG_PARENT / "initdata.meta"
    initdata_toml_path: Path = CONFIG_PARENT / "initdata.toml"
    static_files: Annotated[List[Path], NoDecode] = Field(
        default=[
            CONFIG_PARENT / "aa.toml",
            CONFIG_PARENT / "cdh.toml",
            CONFIG_PARENT / "policy.rego",
        ]
    )

    debug: bool = False

    config_file: Optional[Path] = None

    @model_validator(mode="before")
    @classmethod
    def derive_paths_from_parent(cls, data):
        """Place every path that is not set explicitly below parent_path."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        parent = Path(data.get("parent_path") or CONFIG_PARENT)
        for field, file_name in DEFAULT_FILE_NAMES.items():
            if data.get(field) is None:
                data[field] = parent / file_name

        if data.get("static_files") is None:
            data["static_files"] = [
                data["aa_config_path"],
                data["cdh_config_path"],
                data["policy_path"],
            ]
        return data

    @field_validator("static_files", mode="before")
    @classmethod
    def parse_static_files(cls, v):
        """Parse comma-separated static file list from environment."""
        if isinstance(v, str):
            return [f.strip() for f in v.split(",") if f.strip()]
        return v

    def __init__(self, **kwargs):
        """Initialize config with support for a JSON config file."""
        config_file = (
            kwargs.get("config_file")
            or kwargs.get("CONFIG_FILE")
            or os.environ.get("PEERPOD_CONFIG_FILE", DEFAULT_CONFIG_FILE)
        )

        file_config = {}
        if config_file and Path(config_file).exists():
            with open(config_file, "r") as f:
                file_config = json.load(f)

        # Explicit kwargs take precedence over the file, both over env vars
        merged_config = {**file_config, **kwargs}
        merged_config.pop("CONFIG_FILE", None)

        super().__init__(**merged_config)

    def export_json(self) -> str:
        """Export configuration as JSON."""
        return self.model_dump_json(indent=2)


class ProviderConfig(BaseSettings):
    """Cloud provider user-data endpoints and retry timing."""

    model_config = SettingsConfigDict(
        env_prefix="PEERPOD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    retry_delay: float = Field(default=5.0, ge=0)
    request_timeout: float = Field(default=3.0, gt=0)

    docker_marker_file: Path = Path("/.dockerenv")
    docker_user_data_url: str = "http://127.0.0.1:8006/user-data"

    azure_identity_url: str = "http://169.254.169.254/metadata/instance/compute?api-version=2021-01-01"
    azure_user_data_url: str = (
        "http://169.254.169.254/metadata/instance/compute/userData?api-version=2021-01-01&format=text"
    )

    aws_token_url: str = "http://169.254.169.254/latest/api/token"
    aws_user_data_url: str = "http://169.254.169.254/latest/user-data"
    aws_token_ttl: int = Field(default=21600, ge=1, le=21600)