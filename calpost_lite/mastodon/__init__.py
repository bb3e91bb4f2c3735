"""Mastodon status publishing."""

from .poster import BatchPolicy, BatchPostResult, MastodonPostError, MastodonPoster, PostOutcome

__all__ = [
    "BatchPolicy",
    "BatchPostResult",
    "MastodonPostError",
    "MastodonPoster",
    "PostOutcome",
]
