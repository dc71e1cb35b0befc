"""
Strict decoding of cloud-init style user-data.

Only the ``write_files`` key is understood. Any other key, at the top
level or inside a write_files entry, makes the whole document invalid.
"""

import yaml
from pydantic import ValidationError

from peerpod.exceptions import CloudConfigParseException
from peerpod.models import CloudConfig


def parse_user_data(user_data: bytes) -> CloudConfig:
    """
    Decode raw user-data into a CloudConfig.

    Raises:
        CloudConfigParseException: If the payload is empty or does not
            match the expected structure exactly
    """
    if not user_data or not user_data.strip():
        raise CloudConfigParseException("user data is empty")

    try:
        text = user_data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CloudConfigParseException(f"user data is not valid UTF-8: {e}")

    # The "#cloud-config" header is a YAML comment, no need to strip it
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CloudConfigParseException(f"invalid YAML in user data: {e}")

    if not isinstance(document, dict):
        raise CloudConfigParseException(
            f"user data root must be a mapping, got {type(document).__name__}"
        )

    try:
        return CloudConfig.model_validate(document)
    except ValidationError as e:
        raise CloudConfigParseException(f"invalid cloud config: {e}")
