"""Learner identity, credentials, and authenticated-session models."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AuthState(str, Enum):
    """Where the learner stands with respect to having an account."""
    GUEST = "guest"
    REGISTERING = "registering"
    AWAITING_VERIFICATION = "awaiting-verification"
    VERIFIED = "verified"
    LOGGED_IN = "logged-in"


AUTHENTICATED_STATES = frozenset({AuthState.VERIFIED, AuthState.LOGGED_IN})


class LearnerDetails(BaseModel):
    """
    Identity, contact, credential, and consent fields collected at Step 4.

    Passwords are excluded from serialization so they never reach durable
    storage with the rest of the draft.
    """
    account_id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    dob_day: str = ""
    dob_month: str = ""
    dob_year: str = ""
    pickup_address: str = ""
    suburb: str = ""
    state: str = "QLD"
    learner_type: str = ""
    password: str = Field(default="", exclude=True)
    confirm_password: str = Field(default="", exclude=True)
    marketing_consent: bool = True
    terms_accepted: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def dob(self) -> str:
        if not (self.dob_year and self.dob_month and self.dob_day):
            return ""
        return f"{self.dob_year}-{self.dob_month}-{self.dob_day}"


class LoginCredentials(BaseModel):
    email: str = ""
    password: str = Field(default="", exclude=True)


class AuthSession(BaseModel):
    """The persisted authenticated session: account identity plus token."""
    account_id: str
    email: str = ""
    role: str = "learner"
    token: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    is_verified: bool = True

    @classmethod
    def from_api(cls, user: dict[str, Any], token: Optional[str] = None) -> "AuthSession":
        """Build from the backend ``user`` object (``id`` or ``_id``)."""
        return cls(
            account_id=str(user.get("id") or user.get("_id")),
            email=user.get("email", ""),
            role=user.get("role", "learner"),
            token=token,
            first_name=user.get("firstName", ""),
            last_name=user.get("lastName", ""),
            is_verified=user.get("isEmailVerified", user.get("isVerified", True)),
        )
