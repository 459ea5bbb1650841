import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from .transport import Operation

logger = logging.getLogger(__name__)

Executor = Callable[[Operation], dict[str, Any]]


@dataclass
class Page:
    """One page of a connection"""

    items: list[dict[str, Any]]
    next_cursor: str | None
    has_more: bool


def _dig(data: dict[str, Any], data_key: str) -> dict[str, Any]:
    for key in data_key.split("."):
        data = (data or {}).get(key) or {}
    return data


def list_after(
    execute: Executor,
    query: str,
    data_key: str,
    cursor: str | None = None,
    page_size: int = 50,
    backward: bool = False,
    variables: dict[str, Any] | None = None,
) -> Page:
    """
    Fetch one page of a connection

    Forward pages use ``first``/``after``, backward pages ``last``/``before``. The
    returned cursor is only valid together with the same ``query`` and ``variables``.

    Args:
        execute: Callable running an ``Operation`` and returning its ``data``
        query: GraphQL query declaring ``$first``/``$after`` (or ``$last``/``$before``)
        data_key: Path to the connection in ``data``, dotted for nested connections
        cursor: Cursor of the last edge seen, None for the first page
        page_size: Number of edges per page
        backward: Walk towards the start of the result set
        variables: Extra query variables (filters)

    Returns:
        Page with the nodes, the cursor to continue from and whether more pages exist
    """
    page_vars = dict(variables or {})
    if backward:
        page_vars["last"] = page_size
        if cursor:
            page_vars["before"] = cursor
    else:
        page_vars["first"] = page_size
        if cursor:
            page_vars["after"] = cursor

    data = execute(Operation(query, page_vars))
    connection = _dig(data, data_key)
    edges = connection.get("edges") or []
    page_info = connection.get("pageInfo") or {}

    items = [edge["node"] for edge in edges]
    if not edges:
        return Page(items=[], next_cursor=cursor, has_more=False)

    if backward:
        next_cursor = edges[0].get("cursor")
        has_more = bool(page_info.get("hasPreviousPage", False))
    else:
        next_cursor = edges[-1].get("cursor")
        has_more = bool(page_info.get("hasNextPage", False))

    return Page(items=items, next_cursor=next_cursor, has_more=has_more)


def paginate(
    execute: Executor,
    query: str,
    data_key: str,
    page_size: int = 50,
    backward: bool = False,
    variables: dict[str, Any] | None = None,
    max_items: int | None = None,
) -> Iterator[list[dict[str, Any]]]:
    """
    Walk a connection page by page until the service reports no further page

    Yields:
        List of node dictionaries per page
    """
    cursor = None
    total_fetched = 0

    while True:
        page = list_after(execute, query, data_key, cursor, page_size, backward, variables)
        items = page.items
        if not items:
            break

        if max_items is not None:
            remaining = max_items - total_fetched
            if len(items) > remaining:
                items = items[:remaining]
                logger.info(f"Sliced batch to {len(items)} items to respect limit")

        total_fetched += len(items)
        logger.debug(f"Fetched {len(items)} items from {data_key} (total: {total_fetched})")
        yield items

        if max_items is not None and total_fetched >= max_items:
            logger.info(f"Reached max_items limit of {max_items}, stopping pagination")
            break
        if not page.has_more:
            break
        cursor = page.next_cursor
