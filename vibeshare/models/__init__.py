from vibeshare.models.community import Community, CommunityMember
from vibeshare.models.social import Comment, PendingPost, Post, PostLike, SavedPost
from vibeshare.models.user import Relationship, User

__all__ = [
    "Comment",
    "Community",
    "CommunityMember",
    "PendingPost",
    "Post",
    "PostLike",
    "Relationship",
    "SavedPost",
    "User",
]
