import json
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import String, cast, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager, joinedload, selectinload
from structlog import get_logger

from marketplace.core.errors import NotFound
from marketplace.models.base import utcnow
from marketplace.models.blog import BlogComment, BlogPost, BlogStatus
from marketplace.repositories.base import Repository, contains, escape_like
from marketplace.schemas.blog import BlogCreate, BlogSearchParams
from marketplace.schemas.common import PageInfo
from marketplace.utils.file_storage import MediaStore

logger = get_logger()


@dataclass
class BlogPageResult:
    items: list[BlogPost]
    page_info: PageInfo


@dataclass(frozen=True)
class BlogViewer:
    """Who is reading: decides which drafts a search may return."""

    user_id: Optional[UUID] = None
    is_admin: bool = False


class BlogRepository(Repository):
    def __init__(self, db: Session, media: Optional[MediaStore] = None):
        super().__init__(db)
        self.media = media

    # ─── Reads ────────────────────────────────────────────────────────────────

    def find_by_id(self, post_id: UUID) -> Optional[BlogPost]:
        stmt = (
            select(BlogPost)
            .where(BlogPost.id == post_id)
            .options(joinedload(BlogPost.author), selectinload(BlogPost.comments))
        )
        with self._guard("load blog"):
            return self.db.scalars(stmt).first()

    def get_by_id(self, post_id: UUID) -> BlogPost:
        post = self.find_by_id(post_id)
        if post is None:
            raise NotFound("Blog not found")
        return post

    def search(self, params: BlogSearchParams, viewer: BlogViewer,
               author_id: Optional[UUID] = None) -> BlogPageResult:
        conditions = []
        if viewer.user_id is None:
            conditions.append(BlogPost.status == BlogStatus.PUBLISHED)
        elif not viewer.is_admin:
            conditions.append(or_(
                BlogPost.status == BlogStatus.PUBLISHED,
                BlogPost.author_id == viewer.user_id,
            ))

        if params.status is not None:
            conditions.append(BlogPost.status == params.status)
        if author_id is not None:
            conditions.append(BlogPost.author_id == author_id)
        if params.tag:
            # tags is a JSON array; match the quoted element in its text form
            needle = escape_like(json.dumps(params.tag))
            conditions.append(cast(BlogPost.tags, String).like(f"%{needle}%", escape="\\"))
        if params.search:
            conditions.append(or_(
                contains(BlogPost.title, params.search),
                contains(BlogPost.content, params.search),
            ))

        offset = (params.page - 1) * params.limit
        count_stmt = select(func.count()).select_from(BlogPost).where(*conditions)

        with self._guard("search blogs"):
            total = self.db.scalar(count_stmt) or 0
            items = []
            if offset < total:
                stmt = (
                    select(BlogPost)
                    .outerjoin(BlogPost.author)
                    .options(contains_eager(BlogPost.author), selectinload(BlogPost.comments))
                    .where(*conditions)
                    .order_by(BlogPost.created_at.desc())
                    .offset(offset)
                    .limit(params.limit)
                )
                items = list(self.db.scalars(stmt).unique())

        return BlogPageResult(items=items, page_info=PageInfo.build(params.page, params.limit, total))

    def list_by_author(self, author_id: UUID, params: BlogSearchParams, viewer: BlogViewer) -> BlogPageResult:
        return self.search(params, viewer, author_id=author_id)

    # ─── Writes ───────────────────────────────────────────────────────────────

    def create(self, payload: BlogCreate, author_id: UUID, status: BlogStatus,
               cover_image: Optional[str] = None) -> BlogPost:
        now = utcnow()
        post = BlogPost(
            title=payload.title,
            content=payload.content,
            tags=list(payload.tags),
            cover_image=cover_image,
            status=status,
            published_at=now if status == BlogStatus.PUBLISHED else None,
            views=0,
            author_id=author_id,
            created_at=now,
            updated_at=now,
        )
        with self._guard("create blog"):
            self.db.add(post)
            self.db.commit()
        logger.info("Blog created", blog_id=str(post.id), status=status.value)
        return self.get_by_id(post.id)

    def update(self, post_id: UUID, changes: dict, cover_image: Optional[str] = None) -> BlogPost:
        post = self.get_by_id(post_id)
        replaced = None

        for field, value in changes.items():
            setattr(post, field, list(value) if field == "tags" else value)
        if cover_image:
            replaced = post.cover_image
            post.cover_image = cover_image
        post.updated_at = utcnow()

        with self._guard("update blog"):
            self.db.commit()

        if replaced:
            self._remove_cover(replaced, post_id)
        return self.get_by_id(post_id)

    def publish(self, post_id: UUID) -> BlogPost:
        """draft -> published. Publishing an already published post changes nothing."""
        post = self.get_by_id(post_id)
        if post.status == BlogStatus.PUBLISHED:
            return post

        now = utcnow()
        post.status = BlogStatus.PUBLISHED
        post.published_at = now
        post.updated_at = now
        with self._guard("publish blog"):
            self.db.commit()
        logger.info("Blog published", blog_id=str(post_id))
        return self.get_by_id(post_id)

    def delete(self, post_id: UUID) -> None:
        post = self.get_by_id(post_id)
        cover = post.cover_image
        with self._guard("delete blog"):
            self.db.delete(post)
            self.db.commit()
        if cover:
            self._remove_cover(cover, post_id)

    def add_comment(self, post_id: UUID, author_id: UUID, content: str) -> BlogComment:
        comment = BlogComment(post_id=post_id, author_id=author_id, content=content, likes=0)
        with self._guard("add comment"):
            self.db.add(comment)
            self.db.commit()
            self.db.refresh(comment)
        return comment

    def like_comment(self, post_id: UUID, comment_id: UUID) -> BlogComment:
        stmt = (
            update(BlogComment)
            .where(BlogComment.id == comment_id, BlogComment.post_id == post_id)
            .values(likes=BlogComment.likes + 1)
            .execution_options(synchronize_session=False)
        )
        with self._guard("like comment"):
            result = self.db.execute(stmt)
            self.db.commit()
        if result.rowcount == 0:
            raise NotFound("Comment not found")

        self.db.expire_all()
        return self.db.get(BlogComment, comment_id)

    def increment_view(self, post_id: UUID) -> bool:
        stmt = (
            update(BlogPost)
            .where(BlogPost.id == post_id)
            .values(views=BlogPost.views + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to increment blog views", blog_id=str(post_id))
            return False
        self.db.expire_all()
        return True

    def _remove_cover(self, url: str, post_id: UUID) -> None:
        if self.media is None:
            return
        try:
            self.media.remove([url])
        except Exception:
            logger.exception("Failed to remove blog cover", blog_id=str(post_id))
