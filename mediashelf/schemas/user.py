# mediashelf/schemas/user.py
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

# Account roles as they appear on the wire ("type").
RoleName = Literal["root", "admin", "user", "guest"]


class UserCreate(BaseModel):
    """
    Payload for creating an account (admin only).

    Validation rules:
      - username cannot be empty or whitespace
      - password is required; it is hashed before anything is stored
      - omitted permissions are filled from the role defaults
    """

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    username: str = Field(max_length=100)
    password: str = Field(min_length=1)
    email: EmailStr | None = None
    role: RoleName = Field(default="user", alias="type")
    is_active: bool = True
    permissions: dict[str, bool] | None = None
    libraries_accessible: list[str] | None = None
    item_tags_selected: list[str] | None = None

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("username cannot be empty")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class UserUpdate(BaseModel):
    """
    Partial update of an account (admin only).

    Only fields present in the request are applied. Usernames are stripped;
    an empty string for username/email/type is ignored rather than clearing
    the field. The password is hashed by the service before the update
    policy sees it. Unknown keys are ignored.
    """

    model_config = ConfigDict(
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    username: str | None = Field(default=None, max_length=100)
    password: str | None = None
    email: EmailStr | None = None
    role: str | None = Field(default=None, alias="type")
    is_active: bool | None = None
    is_locked: bool | None = None
    permissions: dict[str, bool] | None = None
    libraries_accessible: list[str] | None = None
    item_tags_selected: list[str] | None = None
    series_hide_from_continue_listening: list[str] | None = None

    @field_validator("username")
    @classmethod
    def normalize_username(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v
