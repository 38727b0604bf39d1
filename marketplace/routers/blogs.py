from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from marketplace.api.deps import (
    get_blog_repository, get_current_active_user, get_current_user, get_media_store, require_roles,
)
from marketplace.api.payload import read_payload
from marketplace.core.errors import NotFound
from marketplace.core.permissions import ADMIN_ROLES, Identity, authorize, is_allowed
from marketplace.models.blog import BlogPost, BlogStatus
from marketplace.repositories.base import parse_id
from marketplace.repositories.blogs import BlogRepository, BlogViewer
from marketplace.schemas.blog import (
    BlogCreate, BlogDetailResponse, BlogPage, BlogResponse, BlogSearchParams, BlogUpdate,
    CommentCreate, CommentResponse,
)
from marketplace.schemas.common import ApiResponse, validate_payload
from marketplace.utils.file_storage import MediaStore

router = APIRouter(prefix="/blogs", tags=["Blogs"])

COVER_FIELD = "coverImage"


def blog_search_params(
    page: int = Query(1),
    limit: int = Query(10),
    status_filter: Optional[BlogStatus] = Query(None, alias="status"),
    tag: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
) -> BlogSearchParams:
    return validate_payload(BlogSearchParams, {
        "page": page,
        "limit": limit,
        "status": status_filter,
        "tag": tag,
        "search": search,
    })


def _viewer(identity: Optional[Identity]) -> BlogViewer:
    if identity is None:
        return BlogViewer()
    return BlogViewer(user_id=identity.id, is_admin=identity.is_admin)


def _load_visible(repo: BlogRepository, blog_id: str, viewer: Optional[Identity]) -> BlogPost:
    """Drafts exist only for their author and admins; everyone else gets 404."""
    post = repo.get_by_id(parse_id(blog_id, "blog"))
    if post.status != BlogStatus.PUBLISHED and not is_allowed(viewer, post.author_id, ADMIN_ROLES):
        raise NotFound("Blog not found")
    return post


async def visible_post(
    blog_id: str,
    current_user: Identity = Depends(get_current_active_user),
    repo: BlogRepository = Depends(get_blog_repository),
) -> BlogPost:
    """Loads the post ahead of body validation so 404 wins over a bad body."""
    return _load_visible(repo, blog_id, current_user)


def _load_owned(repo: BlogRepository, blog_id: str, current_user: Identity, action: str) -> BlogPost:
    post = repo.get_by_id(parse_id(blog_id, "blog"))
    authorize(current_user, action, post.author_id, ADMIN_ROLES)
    return post


def _page(result) -> BlogPage:
    return BlogPage(
        items=[BlogResponse.model_validate(p) for p in result.items],
        page_info=result.page_info,
    )


# ─── LIST ─────────────────────────────────────────────────────────────────────

@router.get("", response_model=ApiResponse[BlogPage])
async def list_blogs(
    params: BlogSearchParams = Depends(blog_search_params),
    current_user: Optional[Identity] = Depends(get_current_user),
    repo: BlogRepository = Depends(get_blog_repository),
):
    """Published posts for everyone, plus the caller's own drafts (all drafts for admins)."""
    return ApiResponse(data=_page(repo.search(params, _viewer(current_user))))


@router.get("/user/{user_id}", response_model=ApiResponse[BlogPage])
async def list_user_blogs(
    user_id: str,
    params: BlogSearchParams = Depends(blog_search_params),
    current_user: Optional[Identity] = Depends(get_current_user),
    repo: BlogRepository = Depends(get_blog_repository),
):
    author_id = parse_id(user_id, "user")
    return ApiResponse(data=_page(repo.list_by_author(author_id, params, _viewer(current_user))))


@router.get("/{blog_id}", response_model=ApiResponse[BlogDetailResponse])
async def get_blog(
    blog_id: str,
    current_user: Optional[Identity] = Depends(get_current_user),
    repo: BlogRepository = Depends(get_blog_repository),
):
    post = _load_visible(repo, blog_id, current_user)
    repo.increment_view(post.id)
    return ApiResponse(data=BlogDetailResponse.model_validate(repo.get_by_id(post.id)))


# ─── CREATE / UPDATE / DELETE ─────────────────────────────────────────────────

@router.post("", response_model=ApiResponse[BlogDetailResponse], status_code=status.HTTP_201_CREATED)
async def create_blog(
    request: Request,
    current_user: Identity = Depends(get_current_active_user),
    repo: BlogRepository = Depends(get_blog_repository),
    media: MediaStore = Depends(get_media_store),
):
    """
    Create a post. Admin posts are published immediately; everyone else's
    start as drafts awaiting an admin.
    """
    fields, files = await read_payload(request, file_fields=[COVER_FIELD])
    payload = validate_payload(BlogCreate, fields)

    stored = await media.accept(files.get(COVER_FIELD, []), media.blog_cover)
    initial_status = BlogStatus.PUBLISHED if current_user.is_admin else BlogStatus.DRAFT
    try:
        post = repo.create(
            payload,
            author_id=current_user.id,
            status=initial_status,
            cover_image=stored[0].url if stored else None,
        )
    except Exception:
        media.remove(m.url for m in stored)
        raise

    return ApiResponse(data=BlogDetailResponse.model_validate(post), message="Blog created successfully")


@router.put("/{blog_id}", response_model=ApiResponse[BlogDetailResponse])
async def update_blog(
    blog_id: str,
    request: Request,
    current_user: Identity = Depends(get_current_active_user),
    repo: BlogRepository = Depends(get_blog_repository),
    media: MediaStore = Depends(get_media_store),
):
    post = _load_owned(repo, blog_id, current_user, "update this blog")

    fields, files = await read_payload(request, file_fields=[COVER_FIELD])
    payload = validate_payload(BlogUpdate, fields)

    stored = await media.accept(files.get(COVER_FIELD, []), media.blog_cover)
    try:
        post = repo.update(post.id, payload.changes(), cover_image=stored[0].url if stored else None)
    except Exception:
        media.remove(m.url for m in stored)
        raise

    return ApiResponse(data=BlogDetailResponse.model_validate(post), message="Blog updated successfully")


@router.delete("/{blog_id}", response_model=ApiResponse[None])
async def delete_blog(
    blog_id: str,
    current_user: Identity = Depends(get_current_active_user),
    repo: BlogRepository = Depends(get_blog_repository),
):
    post = _load_owned(repo, blog_id, current_user, "delete this blog")
    repo.delete(post.id)
    return ApiResponse(message="Blog deleted")


@router.post("/{blog_id}/publish", response_model=ApiResponse[BlogResponse])
async def publish_blog(
    blog_id: str,
    current_user: Identity = Depends(require_roles(*ADMIN_ROLES)),
    repo: BlogRepository = Depends(get_blog_repository),
):
    post = repo.publish(parse_id(blog_id, "blog"))
    return ApiResponse(data=BlogResponse.model_validate(post), message="Blog published")


# ─── COMMENTS ─────────────────────────────────────────────────────────────────

@router.post(
    "/{blog_id}/comments",
    response_model=ApiResponse[CommentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    payload: CommentCreate,
    post: BlogPost = Depends(visible_post),
    current_user: Identity = Depends(get_current_active_user),
    repo: BlogRepository = Depends(get_blog_repository),
):
    comment = repo.add_comment(post.id, current_user.id, payload.content.strip())
    return ApiResponse(data=CommentResponse.model_validate(comment), message="Comment added")


@router.post("/{blog_id}/comments/{comment_id}/like", response_model=ApiResponse[CommentResponse])
async def like_comment(
    blog_id: str,
    comment_id: str,
    current_user: Identity = Depends(get_current_active_user),
    repo: BlogRepository = Depends(get_blog_repository),
):
    post = _load_visible(repo, blog_id, current_user)
    comment = repo.like_comment(post.id, parse_id(comment_id, "comment"))
    return ApiResponse(data=CommentResponse.model_validate(comment))
