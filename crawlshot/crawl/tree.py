"""Site tree reconstruction from captured pages.

The hierarchy follows URL paths only: a page's parent is the page whose URL
is its own with the last path segment removed. Pages whose parent was never
captured are attached directly under the root.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from crawlshot.core.url_validation import canonicalize_url, parent_url
from crawlshot.crawl.models import PageRecord, SiteTreeNode

logger = logging.getLogger(__name__)


def build_site_tree(
    pages: Iterable[PageRecord], start_url: str
) -> SiteTreeNode | None:
    """Build the rooted site tree.

    Args:
        pages: Captured pages, in capture order
        start_url: Start URL of the crawl

    Returns:
        The root node, or None if there are no pages. The root is the page
        matching the start URL; if none matches, the first page is used.
        Children keep the input order, so identical inputs give identical
        trees.
    """
    nodes: dict[str, SiteTreeNode] = {}
    order: list[str] = []
    for page in pages:
        url = canonicalize_url(page.url)
        if url in nodes:
            logger.warning("Duplicate page record ignored: %s", url)
            continue
        nodes[url] = SiteTreeNode(page=page)
        order.append(url)

    if not order:
        return None

    root_url = canonicalize_url(start_url)
    if root_url not in nodes:
        logger.warning(
            "Start URL %s was not captured, using %s as root", root_url, order[0]
        )
        root_url = order[0]
    root = nodes[root_url]

    for url in order:
        if url == root_url:
            continue
        node = nodes[url]
        candidate = parent_url(url)
        parent = nodes.get(candidate)
        if parent is None or parent is node:
            logger.warning(
                "Orphaned page (no parent found): %s (looking for parent: %s)",
                url,
                candidate,
            )
            root.children.append(node)
        else:
            parent.children.append(node)

    return root


def count_nodes(node: SiteTreeNode | None) -> int:
    """Count the nodes in a tree."""
    if node is None:
        return 0
    return 1 + sum(count_nodes(child) for child in node.children)
