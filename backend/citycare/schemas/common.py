"""Shared schema utilities."""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(BaseModel):
    message: str


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


class PageMeta(CamelModel):
    page: int
    page_size: int
    total: int
    total_pages: int
