"""
folderpush

Pushes a local directory tree to a remote content store one file at a time.
Files are filtered, classified into ordered upload phases, uploaded under
bounded concurrency, and files that fail transiently are retried once.

This package provides:
- uploader: walking, filtering, classification, scheduling and the upload pipeline
- utils: logging, configuration, push manifests and metrics
"""

__version__ = "0.1.0"

from folderpush.utils.logging import setup_logging

# Initialize default logging configuration
setup_logging()
