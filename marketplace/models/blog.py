import enum

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from marketplace.models.base import BaseModel, enum_values
from marketplace.models.user import User


class BlogStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class BlogPost(BaseModel):
    __tablename__ = "blog_posts"

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    tags = Column(JSON, default=list)  # ordered list of strings
    cover_image = Column(String(255), nullable=True)

    status = Column(
        Enum(BlogStatus, values_callable=enum_values, native_enum=False, length=20),
        nullable=False,
        default=BlogStatus.DRAFT,
        index=True,
    )
    published_at = Column(DateTime, nullable=True)
    views = Column(Integer, nullable=False, default=0)

    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    author = relationship(User, foreign_keys=[author_id])

    comments = relationship(
        "BlogComment",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="BlogComment.created_at",
    )

    @property
    def comment_count(self) -> int:
        return len(self.comments)


class BlogComment(BaseModel):
    __tablename__ = "blog_comments"

    post_id = Column(Uuid, ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    likes = Column(Integer, nullable=False, default=0)

    post = relationship("BlogPost", back_populates="comments")
