"""API routers."""

from csvstage.api.routers import collections, staging

__all__ = ["collections", "staging"]
