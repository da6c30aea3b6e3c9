"""
Access Keys
===========
The credential pair used to sign ELS API requests on behalf of a user.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Credential(BaseModel):
    """
    An access key bound to an ELS user.

    ``id`` is the public part which appears in the Authorization header of
    a signed request; ``secret`` is known only to the holder and the ELS and
    is used to compute the signature. ``expiry`` is optional: when unset the
    key never expires.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default="", alias="accessKeyId")
    secret: SecretStr = Field(default_factory=lambda: SecretStr(""), alias="secretAccessKey")
    expiry: Optional[datetime] = Field(default=None, alias="expiryDt")
    owner: str = Field(default="", alias="emailAddress")

    @field_validator("expiry")
    @classmethod
    def _zero_time_is_unset(cls, value: Optional[datetime]) -> Optional[datetime]:
        # The ELS encodes "no expiry" as the zero instant 0001-01-01T00:00:00Z
        if value is None or value.year == 1:
            return None
        return _as_utc(value)

    @classmethod
    def from_json(cls, content: Union[str, bytes]) -> "Credential":
        """Decode an access key as returned by the ELS."""
        return cls.model_validate_json(content)

    def can_sign(self) -> bool:
        """Return True if the key is able to sign an API request."""
        return self.id != "" and self.secret.get_secret_value() != ""

    def valid_until(self, now: datetime, horizon: timedelta) -> bool:
        """
        Return True if the key has not expired and will not do so within
        ``horizon`` of ``now``.
        """
        if self.expiry is None:
            return True
        return self.expiry - _as_utc(now) > horizon
