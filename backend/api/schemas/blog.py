"""
Blog schemas.
"""

from typing import List, Optional

from pydantic import BaseModel


class BlogPostSummary(BaseModel):
    id: int
    slug: str
    title: str
    excerpt: str
    date: str
    modified: Optional[str] = None
    link: Optional[str] = None
    featured_image: Optional[str] = None
    author: Optional[str] = None
    categories: List[int] = []


class BlogPostResponse(BlogPostSummary):
    content: str


class BlogPostListResponse(BaseModel):
    posts: List[BlogPostSummary]
    total: int
    total_pages: int
    page: int


class BlogCategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    count: int = 0
