"""
Age categories for stored submissions.

Each category is a fixed, inclusive age range; ranges never overlap and an age
outside every range is rejected rather than defaulted.

Adding a category: extend AGE_CATEGORIES and keep the ranges disjoint.
"""

import re
from dataclasses import dataclass
from typing import Tuple, Union

from pipeline.errors import InvalidAge


@dataclass(frozen=True)
class AgeCategory:
    """Inclusive age range mapped to a storage directory name."""

    name: str
    min_age: int
    max_age: int

    def contains(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age


AGE_CATEGORIES: Tuple[AgeCategory, ...] = (
    AgeCategory(name="5-8", min_age=5, max_age=8),
    AgeCategory(name="9-12", min_age=9, max_age=12),
    AgeCategory(name="13-15", min_age=13, max_age=15),
)

MIN_AGE = min(c.min_age for c in AGE_CATEGORIES)
MAX_AGE = max(c.max_age for c in AGE_CATEGORIES)


def parse_age(raw: Union[int, str, None]) -> int:
    """
    Parses a form or ledger age value into a positive integer.

    Raises:
        InvalidAge: if the value is missing, non-numeric or not positive
    """
    if isinstance(raw, bool) or raw is None:
        raise InvalidAge(f"Age must be a whole number, got {raw!r}")
    if isinstance(raw, int):
        age = raw
    else:
        text = str(raw).strip()
        if not re.fullmatch(r"[0-9]+", text):
            raise InvalidAge(f"Age must be a whole number, got {raw!r}")
        age = int(text)
    if age <= 0:
        raise InvalidAge(f"Age must be positive, got {age}")
    return age


def bucket_for(age: Union[int, str]) -> str:
    """Return the category name for ``age``. Raises InvalidAge outside all ranges."""
    value = parse_age(age)
    for category in AGE_CATEGORIES:
        if category.contains(value):
            return category.name
    raise InvalidAge(f"Age {value} is outside the supported range {MIN_AGE}-{MAX_AGE}")


def category_names() -> Tuple[str, ...]:
    return tuple(c.name for c in AGE_CATEGORIES)
