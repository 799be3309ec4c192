"""Outline node models."""

from datetime import UTC, datetime

from pydantic import BaseModel, field_validator


class ContentNode(BaseModel):
    """A single text-bearing node (a block) in the outline forest."""

    id: str
    text: str
    edit_time: datetime
    page_title: str
    parent_id: str | None = None

    @field_validator("edit_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class NodeRecord(BaseModel):
    """A row of the outline store, as written by the importer."""

    id: str
    parent_id: str | None
    page_id: str
    page_title: str
    text: str = ""
    edit_time: datetime
    position: int = 0
    is_page: bool = False
