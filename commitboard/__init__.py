"""Upvote leaderboard for a mirrored GitHub repository."""

__version__ = "1.0.0"
