import re
from typing import Optional

from pydantic import BaseModel

_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_number(number: Optional[str]) -> str:
    """Identity of a phone number: separators stripped, one leading '+' kept."""
    if not number:
        return ""
    cleaned = _SEPARATORS.sub("", number.strip())
    if cleaned.startswith("+"):
        return "+" + cleaned[1:].lstrip("+")
    return cleaned


def format_number(number: str) -> str:
    """Display helper for 10-digit numbers: (555) 123-4567."""
    digits = normalize_number(number)
    match = re.fullmatch(r"(\d{3})(\d{3})(\d{4})", digits)
    if not match:
        return number
    return "({}) {}-{}".format(*match.groups())


class Contact(BaseModel):
    name: str
    number: str
    verified: bool = False

    @property
    def key(self) -> str:
        return normalize_number(self.number)


class PredefinedContact(BaseModel):
    name: str
    number: str
