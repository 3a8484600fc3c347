"""
Pydantic models for stored records and their write payloads.
Defines the Book and User documents and the attribute allow-lists.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, validator
from pydantic.types import PositiveInt

# Attributes a client may set on create and update.
BOOK_PERMITTED_FIELDS = (
    "name",
    "original_name",
    "catalog_id",
    "author_id",
    "group_id",
    "user_id",
)
USER_PERMITTED_FIELDS = ("name", "email", "group_id")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form MongoDB hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def permitted(attrs: Mapping[str, Any], fields: Sequence[str]) -> Dict[str, Any]:
    """
    Keep only allow-listed attributes.

    Args:
        attrs: Raw attributes from the request body
        fields: Allow-list for the resource

    Returns:
        New dictionary with the permitted keys that were present
    """
    return {field: attrs[field] for field in fields if field in attrs}


class BookRecord(BaseModel):
    """Book document as stored and returned by the API."""
    id: int = Field(..., description="Book identifier")
    name: str = Field(..., description="Book title")
    original_name: str = Field(..., description="Title in the original language")
    catalog_id: int = Field(..., description="Catalog the book belongs to")
    author_id: int = Field(..., description="Author identifier")
    group_id: Optional[int] = Field(None, description="Group identifier")
    user_id: int = Field(..., description="User who added the book")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class UserRecord(BaseModel):
    """User document as stored and returned by the API."""
    id: int = Field(..., description="User identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Unique e-mail address")
    group_id: Optional[int] = Field(None, description="Group identifier")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class BookCreate(BaseModel):
    """Attributes required to create a book."""
    name: str = Field(..., min_length=1)
    original_name: str = Field(..., min_length=1)
    catalog_id: PositiveInt
    author_id: PositiveInt
    group_id: Optional[PositiveInt] = None
    user_id: PositiveInt

    model_config = {"str_strip_whitespace": True}


class BookUpdate(BaseModel):
    """Partial book update; unset fields are left untouched."""
    name: Optional[str] = Field(None, min_length=1)
    original_name: Optional[str] = Field(None, min_length=1)
    catalog_id: Optional[PositiveInt] = None
    author_id: Optional[PositiveInt] = None
    group_id: Optional[PositiveInt] = None
    user_id: Optional[PositiveInt] = None

    model_config = {"str_strip_whitespace": True}

    @validator('name', 'original_name', 'catalog_id', 'author_id', 'user_id')
    def reject_null(cls, v):
        """Required book attributes cannot be cleared."""
        if v is None:
            raise ValueError("can't be blank")
        return v


class UserCreate(BaseModel):
    """Attributes required to create a user."""
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    group_id: Optional[PositiveInt] = None

    model_config = {"str_strip_whitespace": True}

    @validator('email')
    def normalize_email(cls, v):
        return v.lower()


class UserUpdate(BaseModel):
    """Partial user update; unset fields are left untouched."""
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    group_id: Optional[PositiveInt] = None

    model_config = {"str_strip_whitespace": True}

    @validator('name', 'email')
    def reject_null(cls, v):
        if v is None:
            raise ValueError("can't be blank")
        return v

    @validator('email')
    def normalize_email(cls, v):
        return v.lower()
