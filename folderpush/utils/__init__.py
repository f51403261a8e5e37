"""
Utility modules shared by the upload pipeline.

- logging: Structured logging with entry/exit decorators
- config: Environment configuration
- config_loader: YAML push manifests
- metrics: Prometheus collectors
"""

from folderpush.utils.logging import get_logger, log_function_call

__all__ = ["get_logger", "log_function_call"]
