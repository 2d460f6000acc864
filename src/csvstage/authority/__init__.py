"""Authoritative document store access."""

from csvstage.authority.store import AuthoritativeStore

__all__ = ["AuthoritativeStore"]
