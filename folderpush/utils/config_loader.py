"""
Push manifest loader and validator.

Loads YAML manifests describing one or more folder uploads so a whole site
can be pushed with a single command. Provides validation against the
expected schema.

Example manifest (folderpush.yaml):
    ```yaml
    version: "1.0"

    ignore:
      - "*.psd"
      - drafts/

    uploads:
      - src: ./theme
        dest: my-theme
        mode: draft

      - src: ./shared-modules
        dest: shared
        account: "123456"
    ```

Usage:
    >>> from folderpush.utils.config_loader import load_config, validate_config
    >>> manifest = load_config("folderpush.yaml")
    >>> errors = validate_config(manifest)
    >>> if not errors:
    ...     print(f"Pushing {len(manifest['uploads'])} folders")
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from folderpush.utils.config import VALID_MODES
from folderpush.utils.logging import get_logger

logger = get_logger(__name__)


SUPPORTED_VERSIONS = ["1.0"]


@dataclass
class ConfigError:
    """Validation error in a manifest file."""

    field: str
    message: str
    value: Optional[Any] = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value})"
        return f"{self.field}: {self.message}"


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a push manifest from a YAML file.

    Args:
        config_path: Path to YAML manifest

    Returns:
        Dictionary containing the parsed manifest

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the path is not a file, is empty, or is not a mapping
        yaml.YAMLError: If the YAML is malformed
    """
    path = Path(config_path)
    logger.info(f"Loading push manifest from: {path}")

    if not path.exists():
        raise FileNotFoundError(f"Manifest file not found: {path}")

    if not path.is_file():
        raise ValueError(f"Manifest path is not a file: {path}")

    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise

    if config is None:
        raise ValueError("Manifest file is empty")
    if not isinstance(config, dict):
        raise ValueError(f"Manifest must be a mapping, got {type(config).__name__}")

    logger.info(f"Manifest loaded with {len(config.get('uploads') or [])} uploads")
    return dict(config)


def validate_config(config: Dict[str, Any]) -> List[ConfigError]:
    """
    Validate a manifest against the expected schema.

    Returns:
        List of validation errors (empty if valid)
    """
    errors: List[ConfigError] = []

    if "version" not in config:
        errors.append(ConfigError("version", "Missing required field"))
    elif config["version"] not in SUPPORTED_VERSIONS:
        errors.append(
            ConfigError(
                "version",
                f"Unsupported version (supported: {SUPPORTED_VERSIONS})",
                config["version"],
            )
        )

    if "ignore" in config:
        errors.extend(_validate_ignore(config["ignore"]))

    errors.extend(_validate_uploads(config))

    if errors:
        logger.warning(f"Manifest validation failed with {len(errors)} errors")
    else:
        logger.info("Manifest validation passed")

    return errors


def _validate_ignore(ignore: Any) -> List[ConfigError]:
    if not isinstance(ignore, list):
        return [ConfigError("ignore", "Must be a list", type(ignore).__name__)]

    return [
        ConfigError(f"ignore[{i}]", "Must be a string", type(pattern).__name__)
        for i, pattern in enumerate(ignore)
        if not isinstance(pattern, str)
    ]


def _validate_uploads(config: Dict[str, Any]) -> List[ConfigError]:
    errors: List[ConfigError] = []

    if "uploads" not in config:
        errors.append(ConfigError("uploads", "Missing required field"))
        return errors

    uploads = config["uploads"]
    if not isinstance(uploads, list):
        errors.append(ConfigError("uploads", "Must be a list", type(uploads).__name__))
        return errors

    if len(uploads) == 0:
        errors.append(ConfigError("uploads", "Must contain at least one upload"))

    for i, upload in enumerate(uploads):
        prefix = f"uploads[{i}]"

        if not isinstance(upload, dict):
            errors.append(ConfigError(prefix, "Must be a mapping", type(upload).__name__))
            continue

        for field in ["src", "dest"]:
            if field not in upload:
                errors.append(ConfigError(f"{prefix}.{field}", "Missing required field"))
            elif not isinstance(upload[field], str):
                errors.append(
                    ConfigError(
                        f"{prefix}.{field}", "Must be a string", type(upload[field]).__name__
                    )
                )

        if "mode" in upload and upload["mode"] not in VALID_MODES:
            errors.append(
                ConfigError(
                    f"{prefix}.mode",
                    f"Invalid mode (valid: {list(VALID_MODES)})",
                    upload["mode"],
                )
            )

        if "account" in upload and not isinstance(upload["account"], (str, int)):
            errors.append(
                ConfigError(
                    f"{prefix}.account",
                    "Must be a string or integer",
                    type(upload["account"]).__name__,
                )
            )

    return errors


def get_config_examples() -> Dict[str, str]:
    """
    Get example manifest templates.

    Returns:
        Dictionary mapping example names to YAML templates
    """
    return {
        "single_folder": """version: "1.0"

uploads:
  - src: ./theme
    dest: my-theme
""",
        "multi_folder": """version: "1.0"

ignore:
  - "*.psd"
  - drafts/

uploads:
  - src: ./theme
    dest: my-theme
    mode: draft

  - src: ./shared-modules
    dest: shared
    mode: publish
    account: "123456"
""",
    }
