"""Crawl engine: admission policy, page pipeline, slicing and tree building."""
