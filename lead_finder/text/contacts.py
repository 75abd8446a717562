"""
Pattern-based contact extraction.

Turns free text into validated, de-duplicated email addresses and phone
numbers. Values that match a placeholder denylist or fail the structural
checks are dropped silently; empty input yields empty lists.
"""
# @file purpose: Extract and validate emails / phone numbers from text.

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", re.ASCII)

# Applied in order; results are merged in first-occurrence order.
PHONE_RES: tuple[re.Pattern[str], ...] = (
    # US: (123) 456-7890, 123-456-7890, 123.456.7890, +1 123 456 7890
    re.compile(r"(\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}", re.ASCII),
    # international: +1234567890, +12 345 678 90
    re.compile(r"\+?\d{1,4}[-.\s]?\d{1,4}[-.\s]?\d{1,4}[-.\s]?\d{1,9}", re.ASCII),
    # bare digit runs
    re.compile(r"\b\d{10,15}\b", re.ASCII),
)

EMAIL_DENYLIST: tuple[str, ...] = (
    "example.com",
    "test.com",
    "domain.com",
    "email.com",
    "yourcompany.com",
    "youremail.com",
    "company.com",
    "noreply@",
    "no-reply@",
)

PHONE_DENYLIST: frozenset[str] = frozenset(
    {"1234567890", "0000000000"} | {d * 10 for d in "123456789"}
)

_NON_DIGIT = re.compile(r"\D", re.ASCII)
_REPEATED_DIGIT = re.compile(r"^(\d)\1+$", re.ASCII)
_WS = re.compile(r"\s+")


class ContactSet(BaseModel):
    emails: list[str] = Field(default_factory=list)
    phones: list[str] = Field(default_factory=list)

    @property
    def has_contacts(self) -> bool:
        return bool(self.emails or self.phones)


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def digits_of(phone: str) -> str:
    return _NON_DIGIT.sub("", phone)


class ContactExtractor:
    """Stateless extractor; one instance can be shared by the scanner and every strategy run."""

    def extract_emails(self, text: str | None) -> list[str]:
        if not text:
            return []
        found = _unique(EMAIL_RE.findall(text))
        return [e for e in found if not self.is_denylisted_email(e) and self.is_valid_email(e)]

    def extract_phones(self, text: str | None) -> list[str]:
        if not text:
            return []
        raw: list[str] = []
        for pattern in PHONE_RES:
            raw.extend(m.group(0) for m in pattern.finditer(text))
        phones = _unique([self.clean_phone(p) for p in raw])
        return [
            p for p in phones if digits_of(p) not in PHONE_DENYLIST and self.is_valid_phone(p)
        ]

    def extract_all(self, text: str | None) -> ContactSet:
        return ContactSet(emails=self.extract_emails(text), phones=self.extract_phones(text))

    async def extract_from_element(self, driver: Any, ctx: Any, element: Any) -> ContactSet:
        if element is None:
            return ContactSet()
        text = await driver.element_text(ctx, element)
        return self.extract_all(text)

    # -------- validation --------

    @staticmethod
    def is_denylisted_email(email: str) -> bool:
        lowered = email.lower()
        return any(pattern in lowered for pattern in EMAIL_DENYLIST)

    @staticmethod
    def is_valid_email(email: str | None) -> bool:
        if not email or len(email) < 6 or len(email) > 254:
            return False
        if "@" not in email or "." not in email:
            return False
        parts = email.split("@")
        if len(parts) != 2:
            return False
        local, domain = parts
        if not local or len(local) > 64:
            return False
        if not domain or len(domain) < 4 or "." not in domain:
            return False
        tld = domain.rsplit(".", 1)[-1]
        return len(tld) >= 2

    @staticmethod
    def is_valid_phone(phone: str | None) -> bool:
        if not phone:
            return False
        digits = digits_of(phone)
        if len(digits) < 10 or len(digits) > 15:
            return False
        return not _REPEATED_DIGIT.match(digits)

    @staticmethod
    def clean_phone(phone: str) -> str:
        return _WS.sub(" ", phone.strip())
