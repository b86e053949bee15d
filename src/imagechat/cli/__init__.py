"""Command line interface for imagechat."""

from .app import app

__all__ = ["app"]
