"""
Environment configuration loader for folderpush.

Loads configuration from a .env file or environment variables for the
remote content store (a Google Cloud Storage bucket) and the upload pipeline.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_CONCURRENCY = 10
DEFAULT_UPLOAD_TIMEOUT_SECONDS = 300
VALID_MODES = ("draft", "publish")


@dataclass
class FolderPushConfig:
    """Pipeline environment configuration."""

    # Remote content store
    gcs_bucket: str
    account_id: Optional[str] = None

    # Google Cloud Authentication
    google_credentials_path: Optional[str] = None

    # Pipeline settings
    upload_concurrency: int = DEFAULT_CONCURRENCY
    upload_timeout_seconds: int = DEFAULT_UPLOAD_TIMEOUT_SECONDS
    node_binary: str = "node"
    default_mode: str = "publish"

    @classmethod
    def from_env(cls) -> "FolderPushConfig":
        """
        Load configuration from environment variables.

        Loads the project .env file if present, then reads from os.environ.

        Returns:
            FolderPushConfig instance with loaded values

        Raises:
            ValueError: If a required variable is missing or a value is invalid
        """
        env_path = Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        gcs_bucket = os.getenv("FOLDERPUSH_BUCKET")
        if not gcs_bucket:
            raise ValueError(
                "FOLDERPUSH_BUCKET environment variable is required. "
                "Set it in .env or export it."
            )

        concurrency = int(os.getenv("FOLDERPUSH_CONCURRENCY", str(DEFAULT_CONCURRENCY)))
        if concurrency < 1:
            raise ValueError(f"FOLDERPUSH_CONCURRENCY must be at least 1 (got: {concurrency})")

        mode = os.getenv("FOLDERPUSH_MODE", "publish").lower()
        if mode not in VALID_MODES:
            raise ValueError(f"FOLDERPUSH_MODE must be one of {VALID_MODES} (got: {mode})")

        return cls(
            gcs_bucket=gcs_bucket,
            account_id=os.getenv("FOLDERPUSH_ACCOUNT_ID"),
            google_credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
            upload_concurrency=concurrency,
            upload_timeout_seconds=int(
                os.getenv(
                    "FOLDERPUSH_UPLOAD_TIMEOUT_SECONDS",
                    str(DEFAULT_UPLOAD_TIMEOUT_SECONDS),
                )
            ),
            node_binary=os.getenv("FOLDERPUSH_NODE_BINARY", "node"),
            default_mode=mode,
        )


# Global config instance (lazy-loaded)
_config: Optional[FolderPushConfig] = None


def get_config() -> FolderPushConfig:
    """
    Get or create the configuration singleton.

    Example:
        >>> config = get_config()
        >>> print(config.gcs_bucket)
        cms-content-store
    """
    global _config
    if _config is None:
        _config = FolderPushConfig.from_env()
    return _config
