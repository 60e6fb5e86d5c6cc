# =============================================================================
# API Request Models - Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data coming INTO the API. FastAPI uses them for body validation
# (automatic 422 on shape errors) and for the OpenAPI docs at /docs.
#
# Field names are snake_case in Python and camelCase on the wire
# (`alias_generator=to_camel`); either spelling is accepted on input.
# =============================================================================

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_SPECIAL_CHAR = re.compile(r"[^A-Za-z0-9]")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CredentialsRequest(_CamelModel):
    """
    Body for POST /signin.

    Example:
        {"username": "ada", "password": "s3cret!"}
    """

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SignupRequest(CredentialsRequest):
    """
    Body for POST /signup.

    Usernames are 3–12 characters. Passwords are 6–12 characters and must
    contain at least one non-alphanumeric character.
    """

    username: str = Field(..., min_length=3, max_length=12)
    password: str = Field(..., min_length=6, max_length=12)

    @field_validator("password")
    @classmethod
    def _needs_special_char(cls, value: str) -> str:
        if not _SPECIAL_CHAR.search(value):
            raise ValueError("Password must contain at least one special character")
        return value


class AddContentRequest(_CamelModel):
    """
    Body for POST /content.

    For `type="Url"` with a `link`, the page is scraped and empty `title` /
    `content` are filled from it.

    Example:
        {"type": "Url", "link": "https://example.com/post", "title": ""}
    """

    type: str = Field(..., min_length=1, examples=["Note", "Url"])
    title: str | None = Field(default=None, examples=["Reading list"])
    link: str | None = Field(default=None, examples=["https://example.com"])
    content: str | None = Field(default=None)


class SearchRequest(_CamelModel):
    """Body for POST /search. Blank queries are rejected with 400."""

    query: str = Field(default="", examples=["What did I save about Rust?"])


class ShareRequest(_CamelModel):
    """Body for POST /brain/share: true enables sharing, false revokes it."""

    share: bool
