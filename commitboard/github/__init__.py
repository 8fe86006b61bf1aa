"""GitHub API adapters."""

from .oauth import OAuthClient
from .paginator import Paginator, normalize_commit, normalize_pull

__all__ = ["OAuthClient", "Paginator", "normalize_commit", "normalize_pull"]
