"""User and authentication result models."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from pyiiot.models._base import IiotBaseModel


class UserSummary(IiotBaseModel):
    """Identity of the signed-in user, as returned by login and ``/auth/me``."""

    id: str = Field(default="", validation_alias=AliasChoices("_id", "id"))
    email: str = Field(default="", validation_alias=AliasChoices("email"))
    first_name: str | None = Field(default=None, validation_alias=AliasChoices("firstName", "first_name"))
    last_name: str | None = Field(default=None, validation_alias=AliasChoices("lastName", "last_name"))
    role: str | None = Field(default=None, validation_alias=AliasChoices("role"))
    avatar_url: str | None = Field(default=None, validation_alias=AliasChoices("avatar", "avatar_url"))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_storage(self) -> dict[str, str]:
        """Wire-shaped dict used for the durable ``iiot_user`` entry."""
        stored = {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role,
            "avatar": self.avatar_url,
        }
        return {key: value for key, value in stored.items() if value is not None}


class AuthResult(BaseModel):
    """Tokens returned by login, register and refresh.

    Parameters
    ----------
    token : str
        Access token sent as ``Authorization: Bearer``.
    refresh_token : str or None
        Token exchanged at ``/auth/refresh`` for a new access token.
    user : UserSummary or None
        Signed-in user, when the endpoint returns one.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    token: str = Field(validation_alias=AliasChoices("token", "accessToken", "access_token"))
    refresh_token: str | None = Field(default=None, validation_alias=AliasChoices("refreshToken", "refresh_token"))
    user: UserSummary | None = None
