"""crawlshot: crawl a website, screenshot every page and build a site manifest."""

__version__ = "0.1.0"
