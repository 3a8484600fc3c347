"""
Query composition for list endpoints.

A PagedQuery is an immutable description of a listing: equality
conditions, an optional timestamp range and a page window. Every
modifier returns a new value, and the MongoDB filter is rendered fresh
on each evaluation, so a query can be counted and fetched repeatedly.
"""

from datetime import datetime
from functools import reduce
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from api.pagination import PaginationSpec
from api.ranges import RangeSpec


def is_present(value: Any) -> bool:
    """True for values that should turn into a filter."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class PagedQuery(BaseModel):
    """Immutable query descriptor over one collection."""
    collection: str
    conditions: Tuple[Tuple[str, Any], ...] = ()
    range_field: Optional[str] = None
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None
    skip: int = 0
    limit: Optional[int] = None
    sort_field: str = "id"

    model_config = {"frozen": True}

    def where(self, field: str, value: Any) -> "PagedQuery":
        """Add an equality condition; an identical condition is not added twice."""
        if (field, value) in self.conditions:
            return self
        return self.model_copy(update={"conditions": self.conditions + ((field, value),)})

    def within(self, field: str, range_spec: RangeSpec) -> "PagedQuery":
        """Constrain ``field`` to the range; an empty range leaves the query as is."""
        if range_spec.is_empty:
            return self
        return self.model_copy(update={
            "range_field": field,
            "range_start": range_spec.start,
            "range_end": range_spec.end,
        })

    def paginate(self, pagination: PaginationSpec) -> "PagedQuery":
        return self.model_copy(update={"skip": pagination.skip, "limit": pagination.limit})

    def to_mongo(self) -> Dict[str, Any]:
        """Render the conditions as a new MongoDB filter document."""
        clauses = [{field: value} for field, value in self.conditions]

        if self.range_field:
            bounds = {}
            if self.range_start is not None:
                bounds["$gte"] = self.range_start
            if self.range_end is not None:
                bounds["$lte"] = self.range_end
            clauses.append({self.range_field: bounds})

        fields = [next(iter(clause)) for clause in clauses]
        if len(fields) != len(set(fields)):
            return {"$and": clauses}

        mongo_filter: Dict[str, Any] = {}
        for clause in clauses:
            mongo_filter.update(clause)
        return mongo_filter


class ResourceQueryBuilder:
    """
    Builds list queries for one resource.

    Filters are applied in ``filter_fields`` order, so the same parameters
    always produce the same query.
    """

    def __init__(self, filter_fields: Sequence[str], range_field: str = "created_at"):
        self.filter_fields = tuple(filter_fields)
        self.range_field = range_field

    def apply_filters(self, base: PagedQuery, filter_set: Mapping[str, Any]) -> PagedQuery:
        """Fold the present filter values into the query, left to right."""
        return reduce(
            lambda query, field: query.where(field, filter_set[field])
            if is_present(filter_set.get(field)) else query,
            self.filter_fields,
            base,
        )

    def build(
        self,
        base: PagedQuery,
        filter_set: Mapping[str, Any],
        range_spec: RangeSpec,
        pagination: PaginationSpec
    ) -> PagedQuery:
        """
        Compose the filtered, range-limited, paginated query.

        Args:
            base: Query over the whole collection
            filter_set: Equality filters keyed by attribute name
            range_spec: Validated range on the timestamp attribute
            pagination: Validated page window

        Returns:
            New PagedQuery; ``base`` is left untouched
        """
        query = self.apply_filters(base, filter_set)
        query = query.within(self.range_field, range_spec)
        return query.paginate(pagination)


def total_pages(total_count: int, page_size: int) -> int:
    """Number of full pages; a trailing partial page is not counted."""
    if page_size <= 0:
        return 0
    return total_count // page_size
