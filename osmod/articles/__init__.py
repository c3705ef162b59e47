"""Articles module.

Articles, categories, moderator assignments and the per-article comment
counts.

Note: Router is not exported here to avoid circular imports.
Import directly from osmod.articles.router when needed.
"""

from .models import ARTICLES_TABLES_CQL, Article, ArticleCounts, Category
from .service import ArticleService


__all__ = [
    "ARTICLES_TABLES_CQL",
    "Article",
    "ArticleCounts",
    "ArticleService",
    "Category",
]
