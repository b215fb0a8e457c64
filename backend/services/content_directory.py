"""
Existence checks against the member registry and the content store.
Soft-deleted posts/comments and deleted members do not exist for moderation.
"""
from __future__ import annotations
from sqlalchemy.orm import Session

from models.base import Comment, Member, MemberStatus, Post
from utils.errors import NotFound


class ContentDirectory:

    def __init__(self, session: Session):
        self.session = session

    def member_exists(self, member_id: int) -> bool:
        m = self.session.get(Member, member_id)
        return m is not None and m.status != MemberStatus.deleted.value

    def post_exists(self, post_id: int) -> bool:
        p = self.session.get(Post, post_id)
        return p is not None and p.deleted_at is None

    def comment_exists(self, comment_id: int) -> bool:
        c = self.session.get(Comment, comment_id)
        return c is not None and c.deleted_at is None

    def ensure(self, *, member_id: int | None = None, post_id: int | None = None,
               comment_id: int | None = None) -> None:
        """Raise NotFound for the first given reference that does not resolve."""
        if member_id is not None and not self.member_exists(member_id):
            raise NotFound(f"member {member_id} not found", details={"member_id": member_id})
        if post_id is not None and not self.post_exists(post_id):
            raise NotFound(f"post {post_id} not found", details={"post_id": post_id})
        if comment_id is not None and not self.comment_exists(comment_id):
            raise NotFound(f"comment {comment_id} not found", details={"comment_id": comment_id})
