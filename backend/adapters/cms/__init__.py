# CMS Adapters
# WordPress integration

from .wordpress_adapter import (
    WordPressAdapter,
    WordPressAPIError,
    WordPressConnectionError,
    WordPressPost,
    WordPressPostPage,
    create_wordpress_adapter,
)

__all__ = [
    "WordPressAdapter",
    "WordPressPost",
    "WordPressPostPage",
    "WordPressConnectionError",
    "WordPressAPIError",
    "create_wordpress_adapter",
]
