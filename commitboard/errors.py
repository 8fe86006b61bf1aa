"""Error taxonomy shared by commitboard components and the HTTP surface."""

from __future__ import annotations

from typing import Optional


class CommitboardError(RuntimeError):
    """Base error carrying the HTTP status and stable message shown to clients."""

    status_code = 500
    public_message = "Server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)


class InvalidRequest(CommitboardError):
    """Raised when caller input is missing or malformed."""

    status_code = 400
    public_message = "Missing required fields"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message)
        if message:
            self.public_message = message


class DuplicateVote(CommitboardError):
    """Raised when a voter has already voted for an item."""

    status_code = 400
    public_message = "Already voted"

    def __init__(self, item_id: str, voter_id: str) -> None:
        super().__init__(f"Voter '{voter_id}' already voted for '{item_id}'")
        self.item_id = item_id
        self.voter_id = voter_id


class MissingCredentials(CommitboardError):
    status_code = 401
    public_message = "No token provided"


class RateLimitExceeded(CommitboardError):
    status_code = 429
    public_message = "Too many requests, please try again later."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message)
        if message:
            self.public_message = message


class UpstreamFetchFailed(CommitboardError):
    """Raised when the GitHub API returns a non-success status or is unreachable."""

    status_code = 500
    public_message = "Sync failed"

    def __init__(self, status: Optional[int], message: str) -> None:
        label = f"status {status}" if status is not None else "no response"
        super().__init__(f"GitHub API error ({label}): {message}")
        self.status = status
        self.message = message


class OAuthExchangeFailed(CommitboardError):
    status_code = 500
    public_message = "Authentication failed"


class PersistenceFailure(CommitboardError):
    """Raised when a JSON document cannot be read or written."""

    status_code = 500
    public_message = "Server error"


__all__ = [
    "CommitboardError",
    "DuplicateVote",
    "InvalidRequest",
    "MissingCredentials",
    "OAuthExchangeFailed",
    "PersistenceFailure",
    "RateLimitExceeded",
    "UpstreamFetchFailed",
]
