"""Graph API scrapers for pages, posts and comments."""

from civicscrape.scrapers.page import PageScraper
from civicscrape.scrapers.post import PostScraper
from civicscrape.scrapers.comment import CommentScraper

__all__ = ["PageScraper", "PostScraper", "CommentScraper"]
