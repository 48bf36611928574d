"""Row model for one spreadsheet row of any feed."""
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..identity.keys import cc_key, normalize_cc, normalize_person, person_key, split_person_name


def coerce_percent(value: Any) -> Optional[float]:
    """Coerce a cell value to a float percentage; blanks and junk become None.

    Accepts numbers and strings like '80', '80,5', '75 %'.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        s = str(value).strip().replace("%", "").replace(",", ".").strip()
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            return None
    if not math.isfinite(num):
        return None
    return num


def _blank_to_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    s = " ".join(str(value).split())
    return s or None


class RawFeedRecord(BaseModel):
    """One row of the utilization, staffing-plan or employee-master feed.

    Field names are snake_case in Python and camelCase in stored documents.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    person: str = Field("", description="Display name, 'Last, First'")
    competence_center: Optional[str] = None
    team: Optional[str] = None
    line_of_business: Optional[str] = None
    career_level: Optional[str] = None
    canonical_person_id: Optional[str] = None
    file_name: Optional[str] = None
    upload_version: int = 0
    is_latest: bool = True
    weekly_values: Dict[str, Optional[float]] = Field(default_factory=dict)

    @field_validator("person", mode="before")
    @classmethod
    def validate_person(cls, v):
        return normalize_person(v)

    @field_validator("competence_center", mode="before")
    @classmethod
    def validate_cc(cls, v):
        return normalize_cc(v) or None

    @field_validator("team", "line_of_business", "career_level", "file_name", mode="before")
    @classmethod
    def validate_text(cls, v):
        return _blank_to_none(v)

    @field_validator("canonical_person_id", mode="before")
    @classmethod
    def validate_person_id(cls, v):
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        return _blank_to_none(v)

    @field_validator("weekly_values", mode="before")
    @classmethod
    def validate_weekly_values(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("weeklyValues must be a mapping of week label to number")
        return {str(label).strip(): coerce_percent(value) for label, value in v.items() if str(label).strip()}

    @property
    def person_key(self) -> str:
        return person_key(self.person)

    @property
    def cc_key(self) -> Optional[str]:
        return cc_key(self.competence_center)

    def to_document(self) -> Dict[str, Any]:
        """Stored form: camelCase fields, split name parts and the match keys."""
        doc = self.model_dump(by_alias=True)
        doc["lastName"], doc["firstName"] = split_person_name(self.person)
        doc["personKey"] = self.person_key
        doc["ccKey"] = self.cc_key
        return doc
