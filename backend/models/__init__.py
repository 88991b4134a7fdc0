"""SQLModel models package."""

from .block import Block
from .bookmark import Bookmark
from .community import Community, CommunityMember, CommunityPost
from .draft import Draft
from .follow import Follow
from .like import Like
from .media import MEDIA_TYPES, DraftMedia, PostMedia
from .post import POST_TYPES, Post
from .user import User

__all__ = [
    "User",
    "Post",
    "PostMedia",
    "Draft",
    "DraftMedia",
    "Like",
    "Bookmark",
    "Follow",
    "Block",
    "Community",
    "CommunityMember",
    "CommunityPost",
    "MEDIA_TYPES",
    "POST_TYPES",
]
