import json
import os
from pathlib import Path
from typing import List

from loguru import logger
from pydantic import ValidationError

from peerpod.config import ProvisionConfig
from peerpod.exceptions import (
    DaemonConfigException,
    FileWriteException,
    PathScopeViolationException,
)
from peerpod.models import CloudConfig, DaemonConfig


# Provisioned content includes TLS private keys
FILE_MODE = 0o600
DIR_MODE = 0o700


def ensure_in_scope(path, parent_path) -> Path:
    """
    Resolve ``path`` and check it lives strictly below ``parent_path``.

    Symlinks are resolved on both sides, so a link inside the trusted
    root pointing elsewhere is rejected as well.

    Raises:
        PathScopeViolationException: If the path is relative, is the root
            itself, or escapes the root
    """
    candidate = Path(path)
    if not candidate.is_absolute():
        raise PathScopeViolationException(f"path {path} is not absolute")

    root = Path(parent_path).resolve()
    resolved = candidate.resolve()
    if resolved == root or not resolved.is_relative_to(root):
        raise PathScopeViolationException(f"path {path} is not in folder {parent_path}")

    return resolved


def write_file(path: Path, data: bytes, mode: int = FILE_MODE) -> None:
    """Write ``data`` to ``path``, creating parent directories as needed."""
    try:
        path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC | os.O_NOFOLLOW, mode)
        with os.fdopen(fd, "wb") as f:
            # open() only applies the mode to newly created files
            os.fchmod(f.fileno(), mode)
            f.write(data)
    except OSError as e:
        raise FileWriteException(f"failed to write file {path}: {e}")

    logger.info(f"Wrote {path}")


def parse_daemon_config(content: bytes) -> DaemonConfig:
    try:
        document = json.loads(content)
    except ValueError as e:
        raise DaemonConfigException(f"daemon config is not valid JSON: {e}")

    if not isinstance(document, dict):
        raise DaemonConfigException("daemon config must be a JSON object")

    try:
        return DaemonConfig.model_validate(document)
    except ValidationError as e:
        raise DaemonConfigException(f"invalid daemon config: {e}")


def _write_daemon_config(config: ProvisionConfig, path: Path, content: bytes) -> List[Path]:
    if not content:
        raise DaemonConfigException("failed to find daemon config entry in cloud config")

    daemon_config = parse_daemon_config(content)

    write_file(path, content)
    written = [path]

    if daemon_config.auth_json:
        auth_path = ensure_in_scope(config.auth_json_path, config.parent_path)
        write_file(auth_path, daemon_config.auth_json.encode("utf-8"))
        written.append(auth_path)

    return written


def process_cloud_config(config: ProvisionConfig, cloud_config: CloudConfig) -> List[Path]:
    """
    Write every cloud-config entry below the trusted root, in order.

    The first failing entry aborts processing; files written by earlier
    entries are left in place.

    Returns:
        Paths written, including the auth file split out of the daemon config
    """
    daemon_config_path = Path(config.daemon_config_path).resolve()
    written: List[Path] = []

    for write_file_entry in cloud_config.write_files:
        path = ensure_in_scope(write_file_entry.path, config.parent_path)
        content = write_file_entry.content.encode("utf-8")

        if path == daemon_config_path:
            written.extend(_write_daemon_config(config, path, content))
        else:
            write_file(path, content)
            written.append(path)

    return written
