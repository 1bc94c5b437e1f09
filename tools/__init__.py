"""HTTP and text helpers shared by the feed fetcher and the summarizer.

fetch_article:
    Fetch a web page and extract its readable text.
    Handles SSL fallback and HTML parsing.

strip_tags / truncate:
    Plain-text cleanup for model output and prompts.

Example:
    >>> from tools import fetch_article
    >>> article = await fetch_article("https://example.com/article")
    >>> print(article.title, len(article.content))
"""

from tools.utils import USER_AGENT, create_ssl_context, strip_tags, truncate
from tools.fetch import ArticleContent, fetch_article

__all__ = [
    "fetch_article",
    "ArticleContent",
    "create_ssl_context",
    "strip_tags",
    "truncate",
    "USER_AGENT",
]
