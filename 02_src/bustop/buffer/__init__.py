"""Retention buffer module."""

from .retention import RetentionBuffer

__all__ = ["RetentionBuffer"]
