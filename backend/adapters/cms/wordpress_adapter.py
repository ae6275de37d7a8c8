"""
WordPress REST API adapter for the public blog.

Reads published posts and categories from the headless WordPress install
through the REST API v2. No authentication is needed for public content.
"""

import logging
import re
from dataclasses import dataclass, field
from html import unescape
from typing import List, Optional, Dict, Any
from urllib.parse import urljoin

import httpx

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


# Custom Exceptions
class WordPressConnectionError(Exception):
    """Raised when connection to WordPress site fails."""
    pass


class WordPressAPIError(Exception):
    """Raised when WordPress API returns an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _strip_html(value: str) -> str:
    return unescape(_TAG_RE.sub("", value or "")).strip()


@dataclass
class WordPressPost:
    """Published blog post."""

    id: int
    slug: str
    title: str
    excerpt: str
    content: str
    date: str
    modified: Optional[str] = None
    link: Optional[str] = None
    featured_image: Optional[str] = None
    author: Optional[str] = None
    categories: List[int] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "WordPressPost":
        embedded = data.get("_embedded") or {}

        featured_image = None
        media = embedded.get("wp:featuredmedia") or []
        if media and isinstance(media[0], dict):
            featured_image = media[0].get("source_url")

        author = None
        authors = embedded.get("author") or []
        if authors and isinstance(authors[0], dict):
            author = authors[0].get("name")

        return cls(
            id=data.get("id", 0),
            slug=data.get("slug", ""),
            title=_strip_html((data.get("title") or {}).get("rendered", "")),
            excerpt=_strip_html((data.get("excerpt") or {}).get("rendered", "")),
            content=(data.get("content") or {}).get("rendered", ""),
            date=data.get("date", ""),
            modified=data.get("modified"),
            link=data.get("link"),
            featured_image=featured_image,
            author=author,
            categories=data.get("categories") or [],
        )

    def to_dict(self, include_content: bool = True) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "slug": self.slug,
            "title": self.title,
            "excerpt": self.excerpt,
            "date": self.date,
            "modified": self.modified,
            "link": self.link,
            "featured_image": self.featured_image,
            "author": self.author,
            "categories": self.categories,
        }
        if include_content:
            result["content"] = self.content
        return result


@dataclass
class WordPressPostPage:
    """One page of posts plus the totals WordPress reports in headers."""

    posts: List[WordPressPost]
    total: int
    total_pages: int
    page: int


class WordPressAdapter:
    """
    WordPress REST API adapter for reading blog content.
    """

    def __init__(
        self,
        site_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        """
        Initialize WordPress adapter.

        Args:
            site_url: WordPress site URL, defaults to ``wordpress_api_url``
            timeout: Request timeout in seconds, defaults to ``wordpress_timeout``
        """
        self.site_url = (site_url or settings.wordpress_api_url).rstrip("/")
        self.timeout = timeout or settings.wordpress_timeout

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint (e.g. "posts")."""
        return urljoin(f"{self.site_url}/wp-json/wp/v2/", endpoint)

    def _handle_response(self, response: httpx.Response) -> Any:
        """
        Parse a response, raising WordPressAPIError on HTTP errors.
        """
        if response.status_code >= 400:
            try:
                error_message = response.json().get("message", "Unknown error")
            except ValueError:
                error_message = response.text or f"HTTP {response.status_code}"

            logger.error("WordPress API error [%s]: %s", response.status_code, error_message)
            raise WordPressAPIError(
                f"API error [{response.status_code}]: {error_message}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error("Failed to parse WordPress API response: %s", e)
            raise WordPressAPIError(f"Invalid JSON response: {e}")

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        url = self._build_url(endpoint)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                return await client.get(url, params=params, headers={"Accept": "application/json"})
        except httpx.TimeoutException as e:
            logger.error("WordPress timeout: %s", e)
            raise WordPressConnectionError(
                f"Connection timeout. Site did not respond within {self.timeout} seconds."
            )
        except httpx.RequestError as e:
            logger.error("Failed to connect to WordPress site: %s", e)
            raise WordPressConnectionError(f"Cannot connect to {self.site_url}: {e}")

    async def get_posts(
        self,
        page: int = 1,
        per_page: int = 10,
        category: Optional[int] = None,
        search: Optional[str] = None,
    ) -> WordPressPostPage:
        """
        Fetch a page of published posts, newest first.

        Raises:
            WordPressConnectionError: If the site cannot be reached
            WordPressAPIError: If the API returns an error
        """
        params: Dict[str, Any] = {
            "page": page,
            "per_page": per_page,
            "status": "publish",
            "orderby": "date",
            "order": "desc",
            "_embed": 1,
        }
        if category:
            params["categories"] = category
        if search:
            params["search"] = search

        response = await self._get("posts", params=params)

        # WordPress answers 400 rest_post_invalid_page_number past the last page
        if response.status_code == 400 and page > 1:
            return WordPressPostPage(posts=[], total=0, total_pages=0, page=page)

        data = self._handle_response(response)
        posts = [WordPressPost.from_api_response(item) for item in data]

        return WordPressPostPage(
            posts=posts,
            total=int(response.headers.get("X-WP-Total", len(posts))),
            total_pages=int(response.headers.get("X-WP-TotalPages", 1)),
            page=page,
        )

    async def get_post_by_slug(self, slug: str) -> Optional[WordPressPost]:
        """Return the published post with ``slug`` or None."""
        response = await self._get("posts", params={"slug": slug, "_embed": 1})
        data = self._handle_response(response)
        if not data:
            return None
        return WordPressPost.from_api_response(data[0])

    async def get_categories(self) -> List[Dict[str, Any]]:
        """
        Fetch blog categories that have at least one post.
        """
        params = {"per_page": 100, "orderby": "name", "order": "asc", "hide_empty": "true"}
        response = await self._get("categories", params=params)
        categories = self._handle_response(response)

        logger.info("Retrieved %d categories", len(categories))
        return [
            {
                "id": c.get("id"),
                "name": unescape(c.get("name", "")),
                "slug": c.get("slug"),
                "count": c.get("count", 0),
            }
            for c in categories
        ]


def create_wordpress_adapter() -> WordPressAdapter:
    return WordPressAdapter()
