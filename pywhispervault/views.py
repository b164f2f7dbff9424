"""Derived views over an item collection.

Every view is a pure function of a collection and a search query: a
presentation filter is applied first, then the sort rule, then the name
search. Nothing is cached; views are cheap to recompute.
"""

from collections.abc import Iterable
from enum import Enum
from typing import Callable, Optional

from .models import Item
from .utils import EPOCH

View = tuple[Item, ...]


class Presentation(str, Enum):
    """The four ways the collection is presented."""

    ALL = "all"
    FAVORITES = "favorites"
    RECENT = "recent"
    VAULT = "vault"


def matches_query(item: Item, query: Optional[str]) -> bool:
    """Case-insensitive substring match on the item name.

    An empty query matches every item. Whitespace is not stripped, so
    ``" "`` only matches names containing a space.
    """
    if not query:
        return True
    return query.lower() in item.name.lower()


def _search(items: Iterable[Item], query: Optional[str]) -> View:
    return tuple(item for item in items if matches_query(item, query))


def _by_recency(item: Item):
    return item.last_accessed or EPOCH


def all_view(items: Iterable[Item], search_query: str = "") -> View:
    """Every item, in collection order."""
    return _search(items, search_query)


def favorites_view(items: Iterable[Item], search_query: str = "") -> View:
    """Starred items, in collection order."""
    return _search((item for item in items if item.is_favorite), search_query)


def recent_view(
    items: Iterable[Item], search_query: str = "", limit: Optional[int] = None
) -> View:
    """Every item, most recently accessed first.

    The sort is stable, so items with equal access times keep collection
    order (folders before files). Items without an access time go last.
    """
    ordered = sorted(items, key=_by_recency, reverse=True)
    # sorted(reverse=True) keeps equal keys in their original order
    view = _search(ordered, search_query)
    if limit is not None and limit >= 0:
        view = view[:limit]
    return view


def vault_view(items: Iterable[Item], search_query: str = "") -> View:
    """Encrypted items, in collection order."""
    return _search((item for item in items if item.is_encrypted), search_query)


_VIEWS: dict[Presentation, Callable[[Iterable[Item], str], View]] = {
    Presentation.ALL: all_view,
    Presentation.FAVORITES: favorites_view,
    Presentation.RECENT: recent_view,
    Presentation.VAULT: vault_view,
}


def build_view(
    presentation: Presentation, items: Iterable[Item], search_query: str = ""
) -> View:
    """Compute the view for a presentation."""
    return _VIEWS[Presentation(presentation)](items, search_query)
