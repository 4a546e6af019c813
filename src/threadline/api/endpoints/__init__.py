"""API endpoint modules."""

from .auth import router as auth_router
from .bookmarks import router as bookmarks_router
from .communities import router as communities_router
from .connections import router as connections_router
from .events import router as events_router
from .invitations import router as invitations_router
from .notifications import router as notifications_router
from .posts import router as posts_router
from .search import router as search_router
from .suggestions import router as suggestions_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "bookmarks_router",
    "communities_router",
    "connections_router",
    "events_router",
    "invitations_router",
    "notifications_router",
    "posts_router",
    "search_router",
    "suggestions_router",
    "users_router",
]
