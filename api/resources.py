"""
Declarations of the resources served by the API.
"""

from typing import Tuple, Type

from pydantic import BaseModel

from api.config import config as api_config
from api.pagination import PaginationDefaults
from store.models import (
    BOOK_PERMITTED_FIELDS, USER_PERMITTED_FIELDS,
    BookCreate, BookRecord, BookUpdate,
    UserCreate, UserRecord, UserUpdate,
)
from utilities.config import config


class ResourceDefinition(BaseModel):
    """Everything the generic handlers need to know about a resource."""
    name: str
    key: str
    collection: str
    filter_fields: Tuple[str, ...]
    integer_filters: Tuple[str, ...] = ()
    lowercase_filters: Tuple[str, ...] = ()
    range_field: str = "created_at"
    permitted_fields: Tuple[str, ...]
    pagination: PaginationDefaults
    record_model: Type[BaseModel]
    create_model: Type[BaseModel]
    update_model: Type[BaseModel]
    # Books report a missing record on update as a validation error
    # while show reports it as not found.
    update_missing_is_invalid: bool = False

    model_config = {"frozen": True}

    @property
    def not_found_message(self) -> str:
        return f"{self.name} not found"


BOOKS = ResourceDefinition(
    name="Book",
    key="book",
    collection=config.books_collection,
    filter_fields=("user_id", "author_id", "group_id", "catalog_id", "original_name", "name"),
    integer_filters=("user_id", "author_id", "group_id", "catalog_id"),
    permitted_fields=BOOK_PERMITTED_FIELDS,
    pagination=PaginationDefaults(
        default_page_size=api_config.books_page_size,
        max_page_size=api_config.max_page_size,
    ),
    record_model=BookRecord,
    create_model=BookCreate,
    update_model=BookUpdate,
    update_missing_is_invalid=True,
)

USERS = ResourceDefinition(
    name="User",
    key="user",
    collection=config.users_collection,
    filter_fields=("email", "group_id", "name"),
    integer_filters=("group_id",),
    lowercase_filters=("email",),
    permitted_fields=USER_PERMITTED_FIELDS,
    pagination=PaginationDefaults(
        default_page_size=api_config.users_page_size,
        max_page_size=api_config.max_page_size,
    ),
    record_model=UserRecord,
    create_model=UserCreate,
    update_model=UserUpdate,
)
