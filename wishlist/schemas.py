from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

TITLE_MAX_LENGTH = 50


class Wish(BaseModel):
    """A persisted wish. ``id == 0`` means the record has not been stored yet."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int = 0
    title: str
    description: str


class WishIn(BaseModel):
    title: Annotated[str, Field(min_length=1, max_length=TITLE_MAX_LENGTH)]
    description: Annotated[str, Field(min_length=1)]

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    def to_wish(self, wish_id: int = 0) -> Wish:
        return Wish(id=wish_id, title=self.title, description=self.description)
