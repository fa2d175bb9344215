from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Contact(BaseModel):
    """One address book entry. `email` is the identity key."""

    model_config = ConfigDict(validate_assignment=True)

    first_name: str = Field(..., max_length=50)
    last_name: str = Field(..., max_length=50)
    phone_number: Optional[str] = Field(None, max_length=20)
    email: str = Field(..., min_length=1, max_length=100)
    # assigned by storage; only populated on rows read back
    id: Optional[int] = None

    def same_fields(self, other: "Contact") -> bool:
        return (
            self.first_name == other.first_name
            and self.last_name == other.last_name
            and self.phone_number == other.phone_number
            and self.email == other.email
        )


class ContactExistsError(ValueError):
    """A contact with the same email is already stored."""

    def __init__(self, message: str = "row already exists"):
        super().__init__(message)
