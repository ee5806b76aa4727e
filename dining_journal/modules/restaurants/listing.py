"""
In-memory search, cuisine filter and sort for the restaurant list.
Nothing here reads or writes the store; inputs are never mutated.
"""

import unicodedata
from typing import Callable, Dict, List, Optional, Sequence

from dining_journal.modules.restaurants.schemas import RestaurantWithStatsResponse

ALL_CUISINES = "all"


def _contains(value: Optional[str], query: str) -> bool:
    return bool(value) and query in value.lower()


def filter_restaurants(
    restaurants: Sequence[RestaurantWithStatsResponse],
    query: str = "",
    cuisine: Optional[str] = None
) -> List[RestaurantWithStatsResponse]:
    """Keep restaurants whose name, cuisine or address contains the query and whose cuisine matches"""
    result = list(restaurants)

    q = (query or "").strip().lower()
    if q:
        result = [
            r for r in result
            if _contains(r.name, q) or _contains(r.cuisine, q) or _contains(r.address, q)
        ]

    wanted = (cuisine or "").strip().lower()
    if wanted and wanted != ALL_CUISINES:
        result = [r for r in result if (r.cuisine or "").strip().lower() == wanted]

    return result


def name_collation_key(name: str):
    """Accent- and case-insensitive ordering, ties broken by the raw name"""
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return (base.casefold(), name)


def _by_rating(r: RestaurantWithStatsResponse):
    # unrated restaurants go last
    return (r.avg_rating is None, -(r.avg_rating or 0))


SORT_KEYS: Dict[str, Optional[Callable]] = {
    "recent": None,
    "rating": _by_rating,
    "visits": lambda r: -r.visit_count,
    "name": lambda r: name_collation_key(r.name),
}


def sort_restaurants(
    restaurants: Sequence[RestaurantWithStatsResponse],
    sort_by: str = "recent"
) -> List[RestaurantWithStatsResponse]:
    """Stable sort; 'recent' keeps the input order (newest first from the store)"""
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort_by}")
    key = SORT_KEYS[sort_by]
    if key is None:
        return list(restaurants)
    return sorted(restaurants, key=key)


def apply_listing(
    restaurants: Sequence[RestaurantWithStatsResponse],
    query: str = "",
    cuisine: Optional[str] = None,
    sort_by: str = "recent"
) -> List[RestaurantWithStatsResponse]:
    return sort_restaurants(filter_restaurants(restaurants, query, cuisine), sort_by)
