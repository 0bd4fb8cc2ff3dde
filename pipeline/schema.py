"""
Data models for image reference registrations.
Uses Pydantic for validation and type safety.
"""

import re
from enum import Enum
from typing import Optional, List, Dict
from pydantic import BaseModel, ConfigDict, Field


class SubmissionStatus(str, Enum):
    """Submission state of one registered child. Only ever moves PENDING -> DONE."""
    PENDING = "Pending"
    DONE = "Done"


class LookupOutcome(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    ALREADY_COMPLETE = "ALREADY_COMPLETE"
    ELIGIBLE = "ELIGIBLE"


class RegistrationRecord(BaseModel):
    """
    One registered child, as stored in one row of the ledger CSV.
    Field aliases are the ledger column names.

    Every cell is kept as the text read from the file so a rewrite reproduces
    untouched rows exactly; ``age`` and ``status`` are parsed views of it.
    """
    model_config = ConfigDict(populate_by_name=True)

    child_name: str = Field("", alias="Child Name")
    parent_name: str = Field("", alias="Parent Name")
    date_of_birth: str = Field("", alias="Date of Birth")
    age_text: str = Field("", alias="Age")
    gender: str = Field("", alias="Gender")
    education_board: str = Field("", alias="Education Board")
    grade: str = Field("", alias="Grade")
    section: str = Field("", alias="Section")
    country_code: str = Field("", alias="Country Code")
    phone_number: str = Field("", alias="Phone Number")
    email: str = Field("", alias="Email")
    registration_id: str = Field("", alias="Registration ID")
    status_text: str = Field("", alias="Submission-Status")

    # Columns present in the ledger file but not modelled above, kept verbatim
    extra_columns: Dict[str, str] = Field(default_factory=dict)

    @property
    def age(self) -> Optional[int]:
        """Parsed age; None when the cell is blank or not a whole number."""
        text = self.age_text.strip()
        if not re.fullmatch(r"[0-9]+", text):
            return None
        return int(text)

    @property
    def status(self) -> SubmissionStatus:
        # Blank or unrecognised cells (out-of-band registrations) count as Pending
        if self.status_text.strip().lower() == SubmissionStatus.DONE.value.lower():
            return SubmissionStatus.DONE
        return SubmissionStatus.PENDING

    @property
    def is_done(self) -> bool:
        return self.status == SubmissionStatus.DONE

    def mark_done(self) -> None:
        self.status_text = SubmissionStatus.DONE.value

    def matches_email(self, email: str) -> bool:
        return normalize_key(self.email) == normalize_key(email)

    def matches_child(self, email: str, child_name: str) -> bool:
        """True if this record is addressed by the (email, child name) pair."""
        return self.matches_email(email) and normalize_key(self.child_name) == normalize_key(child_name)


class ChildSummary(BaseModel):
    """What the lookup endpoint reports about one child."""
    child_name: str
    age: Optional[int] = None
    status: SubmissionStatus

    def to_json(self) -> dict:
        return {"childName": self.child_name, "age": self.age, "status": self.status.value}


class LookupResult(BaseModel):
    outcome: LookupOutcome
    children: List[ChildSummary] = []

    @property
    def eligible(self) -> bool:
        return self.outcome == LookupOutcome.ELIGIBLE


class SubmissionResult(BaseModel):
    """Outcome of a successful submission."""
    category: str
    file_name: str
    stored_path: str
    records_updated: int


def normalize_key(value: Optional[str]) -> str:
    """Case-insensitive, whitespace-trimmed comparison key."""
    return (value or "").strip().lower()
