"""
Request handlers shared by the book and user endpoints.

Handlers validate parameters, talk to a ResourceRepository and return
plain JSON-ready data. Failures are raised as APIError subclasses.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from api.errors import InvalidRequestError, NotFoundError, field_errors
from api.pagination import PaginationSpec, coerce_int, parse_pagination
from api.query import PagedQuery, ResourceQueryBuilder, is_present, total_pages
from api.ranges import RangeSpec, parse_range, range_from_query
from api.resources import ResourceDefinition
from store.database import DuplicateRecordError, ResourceRepository
from store.models import permitted
from utilities.logger import get_logger

logger = get_logger(__name__)


class ListResult(BaseModel):
    """Body and headers of a list response."""
    body: List[Dict[str, Any]] = Field(..., description="Serialized records of the page")
    headers: Dict[str, str] = Field(..., description="Pagination headers")


def pagination_headers(total_count: int, pagination: PaginationSpec) -> Dict[str, str]:
    return {
        "X-Total-Pages-Count": str(total_pages(total_count, pagination.page_size)),
        "X-Page-Index": str(pagination.page),
        "X-Per-Page": str(pagination.page_size),
        "X-Total-Count": str(total_count),
    }


class ListEndpointHandler:
    """Handles the list operation of one resource."""

    def __init__(self, resource: ResourceDefinition, repository: ResourceRepository):
        self.resource = resource
        self.repository = repository
        self.builder = ResourceQueryBuilder(resource.filter_fields, resource.range_field)

    def validate(self, params: Mapping[str, Any]) -> Tuple[RangeSpec, PaginationSpec]:
        """Check range and pagination together so every problem is reported."""
        errors = []
        range_spec = pagination = None

        try:
            range_spec = parse_range(range_from_query(params))
        except InvalidRequestError as e:
            errors.extend(e.errors)

        try:
            pagination = parse_pagination(
                params.get("page"), params.get("page_size"), self.resource.pagination
            )
        except InvalidRequestError as e:
            errors.extend(e.errors)

        if errors:
            raise InvalidRequestError(errors)
        return range_spec, pagination

    def filter_set(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Collect the resource's equality filters that the request supplied."""
        filters = {}
        errors = []
        for field in self.resource.filter_fields:
            value = params.get(field)
            if not is_present(value):
                continue
            if field in self.resource.integer_filters:
                number = coerce_int(value)
                if number is None:
                    errors.append(f"{field} must be an integer")
                    continue
                value = number
            elif isinstance(value, str):
                value = value.strip()
                if field in self.resource.lowercase_filters:
                    value = value.lower()
            filters[field] = value

        if errors:
            raise InvalidRequestError(errors)
        return filters

    async def handle(self, params: Mapping[str, Any]) -> ListResult:
        """
        List records matching the request parameters.

        Args:
            params: Query parameters of the request

        Returns:
            ListResult with the page of records and the pagination headers

        Raises:
            InvalidRequestError: If any parameter is invalid
        """
        range_spec, pagination = self.validate(params)
        filters = self.filter_set(params)

        query = self.builder.build(
            PagedQuery(collection=self.resource.collection), filters, range_spec, pagination
        )
        total_count = await self.repository.count(query)
        records = await self.repository.fetch(query)

        logger.info(
            "Listed records",
            resource=self.resource.key,
            filters=filters,
            range_applied=not range_spec.is_empty,
            page=pagination.page,
            page_size=pagination.page_size,
            total=total_count,
        )

        return ListResult(
            body=[record.model_dump(mode="json") for record in records],
            headers=pagination_headers(total_count, pagination),
        )


class DetailEndpointHandler:
    """Handles show, create and update for one resource."""

    def __init__(self, resource: ResourceDefinition, repository: ResourceRepository):
        self.resource = resource
        self.repository = repository

    async def _find(self, record_id: Any) -> Optional[BaseModel]:
        number = coerce_int(record_id)
        if number is None:
            return None
        return await self.repository.find_by_id(number)

    def _attributes(self, attrs: Any) -> Dict[str, Any]:
        if attrs is None:
            raise InvalidRequestError({self.resource.key: ["is missing"]})
        if not isinstance(attrs, Mapping):
            raise InvalidRequestError({self.resource.key: ["must be an object"]})
        return permitted(attrs, self.resource.permitted_fields)

    async def show(self, record_id: Any) -> Dict[str, Any]:
        record = await self._find(record_id)
        if record is None:
            raise NotFoundError(self.resource.not_found_message)
        return record.model_dump(mode="json")

    async def create(self, attrs: Any) -> Dict[str, Any]:
        """
        Create a record from allow-listed attributes.

        Raises:
            InvalidRequestError: With field messages when validation or the
                unique indexes reject the record
        """
        try:
            validated = self.resource.create_model.model_validate(self._attributes(attrs))
        except ValidationError as e:
            raise InvalidRequestError(field_errors(e))

        try:
            record = await self.repository.insert(validated.model_dump())
        except DuplicateRecordError as e:
            raise InvalidRequestError({e.field: ["has already been taken"]})

        return record.model_dump(mode="json")

    async def update(self, record_id: Any, attrs: Any) -> Dict[str, Any]:
        """
        Update a record and return it as reloaded from the store.

        A missing record is a NotFoundError, except for resources flagged
        with ``update_missing_is_invalid`` where it is an InvalidRequestError
        keyed by the resource name.
        """
        record = await self._find(record_id)
        if record is None:
            message = self.resource.not_found_message
            if self.resource.update_missing_is_invalid:
                raise InvalidRequestError({self.resource.key: [message]})
            raise NotFoundError(message)

        try:
            validated = self.resource.update_model.model_validate(self._attributes(attrs))
        except ValidationError as e:
            raise InvalidRequestError(field_errors(e))

        changes = validated.model_dump(exclude_unset=True)
        if changes:
            try:
                await self.repository.update(record.id, changes)
            except DuplicateRecordError as e:
                raise InvalidRequestError({e.field: ["has already been taken"]})

        reloaded = await self.repository.find_by_id(record.id)
        if reloaded is None:
            raise NotFoundError(self.resource.not_found_message)
        return reloaded.model_dump(mode="json")
