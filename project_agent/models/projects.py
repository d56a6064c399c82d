"""Project and contact data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Contact:
    """A stakeholder reachable for a project."""

    id: str
    company_id: str
    full_name: str
    role: str | None = None
    email: str | None = None
    phone_number: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return the contact as a dictionary."""
        return {
            "id": self.id,
            "full_name": self.full_name,
            "role": self.role,
            "email": self.email,
            "phone_number": self.phone_number,
        }


@dataclass
class Project:
    """A tracked project owned by a company."""

    id: str
    company_id: str
    project_name: str
    crm_id: str | None = None
    summary: str | None = None
    next_step: str | None = None
    next_check_date: datetime | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    def set_field(self, name: str, value: Any) -> None:
        """Update a named attribute, falling back to the free-form field map."""
        if name in ("summary", "next_step", "project_name"):
            setattr(self, name, value)
        else:
            self.fields[name] = value
