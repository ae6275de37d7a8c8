"""
Public blog routes backed by the headless WordPress site.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from adapters.cms.wordpress_adapter import (
    WordPressAPIError,
    WordPressConnectionError,
    create_wordpress_adapter,
)
from api.schemas.blog import (
    BlogCategoryResponse,
    BlogPostListResponse,
    BlogPostResponse,
    BlogPostSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blog", tags=["Blog"])


def _cms_unavailable(e: Exception) -> HTTPException:
    logger.error("Blog CMS request failed: %s", e)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Blog temporarily unavailable",
    )


@router.get("/posts", response_model=BlogPostListResponse)
async def list_posts(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=50),
    category: Optional[int] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
):
    try:
        result = await create_wordpress_adapter().get_posts(
            page=page, per_page=per_page, category=category, search=search
        )
    except (WordPressConnectionError, WordPressAPIError) as e:
        raise _cms_unavailable(e)

    return BlogPostListResponse(
        posts=[BlogPostSummary(**p.to_dict(include_content=False)) for p in result.posts],
        total=result.total,
        total_pages=result.total_pages,
        page=result.page,
    )


@router.get("/posts/{slug}", response_model=BlogPostResponse)
async def get_post(slug: str):
    try:
        post = await create_wordpress_adapter().get_post_by_slug(slug)
    except (WordPressConnectionError, WordPressAPIError) as e:
        raise _cms_unavailable(e)

    if post is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found",
        )
    return BlogPostResponse(**post.to_dict())


@router.get("/categories", response_model=List[BlogCategoryResponse])
async def list_categories():
    try:
        categories = await create_wordpress_adapter().get_categories()
    except (WordPressConnectionError, WordPressAPIError) as e:
        raise _cms_unavailable(e)
    return categories
