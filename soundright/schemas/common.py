from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


T = TypeVar("T")

# Largest line quantity accepted on documents, deliveries and allocations
MAX_QUANTITY = 100_000


class CamelModel(BaseModel):
    """Wire format is camelCase; attributes stay snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


def empty_to_none(v):
    if v is None:
        return None
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class Pagination(CamelModel):
    page: int
    limit: int
    total_pages: int


class DataResponse(CamelModel, Generic[T]):
    success: bool = True
    data: T


class ListResponse(CamelModel, Generic[T]):
    success: bool = True
    count: int
    total_count: int
    pagination: Pagination
    data: List[T]


class MessageResponse(CamelModel):
    success: bool = True
    message: str
