"""Agent coordination and policy-validation core."""

from .dependencies import Runtime, build_runtime

__all__ = ["Runtime", "build_runtime"]

__version__ = "0.1.0"
