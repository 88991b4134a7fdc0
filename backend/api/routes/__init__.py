"""HTTP routers mounted under the `/api` prefix."""

from fastapi import APIRouter

from . import bookmarks, connections, drafts, engagement, posts, profile, uploads, users, webhooks

api_router = APIRouter()
api_router.include_router(posts.router)
api_router.include_router(bookmarks.router)
api_router.include_router(engagement.router)
api_router.include_router(connections.router)
api_router.include_router(users.router)
api_router.include_router(drafts.router)
api_router.include_router(uploads.router)
api_router.include_router(profile.router)
api_router.include_router(webhooks.router)

__all__ = ["api_router"]
