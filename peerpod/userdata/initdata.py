"""
Initdata digest and artifact construction.

The digest written here is re-derived independently by the attester, so
the file order and the byte concatenation must stay stable: files are
hashed in configured order, absent files are skipped.
"""

import hashlib
from pathlib import Path
from typing import Callable, Dict
import tomllib

import tomli_w
from loguru import logger
from pydantic import ValidationError

from peerpod.config import ProvisionConfig
from peerpod.exceptions import (
    InitdataMetaException,
    MissingStaticFileException,
    ProvisionException,
    StaticFileEncodingException,
    UnsupportedDigestAlgorithmException,
)
from peerpod.models import InitData
from peerpod.userdata.materialize import write_file


DIGEST_FILE_MODE = 0o644

DIGEST_ALGORITHMS: Dict[str, Callable] = {
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
}


def load_initdata_meta(path: Path) -> InitData:
    """Read the algorithm and version descriptor."""
    try:
        with open(path, "rb") as f:
            document = tomllib.load(f)
    except FileNotFoundError:
        raise InitdataMetaException(f"initdata meta file {path} does not exist")
    except (OSError, ValueError) as e:
        raise InitdataMetaException(f"failed to read initdata meta {path}: {e}")

    try:
        return InitData(algorithm=document.get("algorithm"), version=document.get("version"))
    except ValidationError as e:
        raise InitdataMetaException(f"invalid initdata meta {path}: {e}")


def get_digest_function(algorithm: str) -> Callable:
    try:
        return DIGEST_ALGORITHMS[algorithm]
    except KeyError:
        raise UnsupportedDigestAlgorithmException(
            f"Error creating initdata hash, the algorithm {algorithm} is not supported"
        )


def calculate_digest(config: ProvisionConfig) -> str:
    """
    Hash the present static files and persist the hex digest.

    Returns:
        The lowercase hex digest written to ``config.digest_path``

    Raises:
        InitdataMetaException: Meta descriptor missing or undecodable
        UnsupportedDigestAlgorithmException: Unknown algorithm, nothing written
    """
    initdata = load_initdata_meta(config.initdata_meta_path)
    digest_function = get_digest_function(initdata.algorithm)

    hasher = digest_function()
    for static_file in config.static_files:
        path = Path(static_file)
        if not path.exists():
            logger.debug(f"Static file {path} not present, skipping")
            continue

        logger.info(f"Calculating initdata hash, reading file {path}")
        try:
            hasher.update(path.read_bytes())
        except OSError as e:
            raise ProvisionException(f"Error reading file {path}: {e}")

    checksum = hasher.hexdigest()
    write_file(Path(config.digest_path), checksum.encode("utf-8"), mode=DIGEST_FILE_MODE)
    logger.info(f"Initdata {initdata.algorithm} digest: {checksum}")

    return checksum


def construct_initdata(config: ProvisionConfig) -> InitData:
    """
    Bundle the meta descriptor and every static file into the initdata TOML.

    Unlike the digest, every configured static file must exist here.

    Raises:
        MissingStaticFileException: A configured static file is absent
        StaticFileEncodingException: A static file is not UTF-8 text
    """
    initdata = load_initdata_meta(config.initdata_meta_path)

    data = {}
    for static_file in config.static_files:
        path = Path(static_file)
        try:
            # Bytes as-is, no newline translation, so the bundle matches the hashed files
            data[path.name] = path.read_bytes().decode("utf-8")
        except FileNotFoundError:
            raise MissingStaticFileException(f"static file {path} does not exist")
        except OSError as e:
            raise MissingStaticFileException(f"failed to read static file {path}: {e}")
        except UnicodeDecodeError as e:
            raise StaticFileEncodingException(f"static file {path} is not valid UTF-8: {e}")

    initdata = initdata.model_copy(update={"data": data})
    write_file(
        Path(config.initdata_toml_path),
        tomli_w.dumps(initdata.to_toml_dict()).encode("utf-8"),
        mode=DIGEST_FILE_MODE,
    )

    return initdata
