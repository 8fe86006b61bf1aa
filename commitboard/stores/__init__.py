"""Persistence backends for commitboard documents."""

from .json_store import CORRUPT_POLICIES, JsonStore

__all__ = ["CORRUPT_POLICIES", "JsonStore"]
