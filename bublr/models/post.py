import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from bublr.db.base_class import Base


class Post(Base):
    __table_args__ = (UniqueConstraint("author_id", "slug", name="uq_post_author_slug"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    author_id = Column(String(36), ForeignKey("user.id"), nullable=False, index=True)
    title = Column(String(512), nullable=False, default="")
    excerpt = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    slug = Column(String(255), nullable=False)
    published = Column(Boolean, nullable=False, default=False, index=True)
    last_edited = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    # Precomputed expansion of title/excerpt/content, at most 30 terms
    search_queries = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    author = relationship("User", back_populates="posts")
    terms = relationship("PostSearchTerm", cascade="all, delete-orphan", passive_deletes=True)


class PostSearchTerm(Base):
    """Array-membership index over ``Post.search_queries``."""

    post_id = Column(String(36), ForeignKey("post.id", ondelete="CASCADE"), primary_key=True)
    term = Column(String(255), primary_key=True, index=True)
