"""Cached metasearch over scraped web search engines."""

__version__ = "0.1.0"
