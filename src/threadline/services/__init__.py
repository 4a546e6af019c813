"""Business logic services for the Threadline application."""

from . import communities, notifications, pagination, policy, posts, social, users

__all__ = [
    "communities",
    "notifications",
    "pagination",
    "policy",
    "posts",
    "social",
    "users",
]
