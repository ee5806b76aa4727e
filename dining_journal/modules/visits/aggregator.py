"""
Read-side statistics over visits.

Pure functions: they take visit rows (dicts as returned by Supabase, or any
object with the same attribute names) and never touch the store.
"""

import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Iterable, Optional

from dining_journal.modules.visits.schemas import RestaurantStats


def _field(visit: Any, name: str) -> Any:
    if isinstance(visit, Mapping):
        return visit.get(name)
    return getattr(visit, name, None)


def _as_date(value: Any) -> Optional[date]:
    """Calendar date of a date, datetime or ISO string; time of day is ignored."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _mean(values: list) -> Optional[float]:
    if not values:
        return None
    # fsum is exact, so the mean does not depend on the order of the visits
    return math.fsum(values) / len(values)


def aggregate_restaurant(visits: Iterable[Any]) -> RestaurantStats:
    """Visit count, mean rating, mean bill and latest visit date for one restaurant"""
    visits = list(visits)
    ratings = [float(r) for r in (_field(v, "overall_rating") for v in visits) if r is not None]
    bills = [float(b) for b in (_field(v, "total_bill") for v in visits) if b is not None]
    dates = [d for d in (_as_date(_field(v, "date")) for v in visits) if d is not None]

    return RestaurantStats(
        visit_count=len(visits),
        avg_rating=_mean(ratings),
        avg_price=_mean(bills),
        last_visit=max(dates) if dates else None
    )


def price_per_person(total_bill: Optional[float], number_of_people: Optional[int]) -> Optional[float]:
    """Bill split evenly, rounded to cents; None unless both parts are known"""
    if total_bill is None or not number_of_people:
        return None
    return round(float(total_bill) / number_of_people, 2)
