# callintel/services/domain_classifier.py
"""
Internal/external classification of a meeting from participant emails.

Pure functions, no I/O. ``is_external`` is tri-state: ``None`` means we had
nobody to look at (or the calendar withheld the attendee list) and must never
be read as "internal".
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Pattern, Sequence

from ..config import settings

SOURCE_CALENDAR = "calendar"
SOURCE_MANUAL = "manual"
SOURCE_UNKNOWN = "unknown"

# rooms, resources, no-reply and bot accounts never count as participants
IGNORE_EMAILS: list[Pattern[str]] = [
    re.compile(r"^.*\.resource\.calendar@.*$"),
    re.compile(r"^noreply@.*$"),
    re.compile(r"^no-reply@.*$"),
    re.compile(r"^.*@resource\.calendar\.google\.com$"),
    re.compile(r"^bot@.*$"),
    re.compile(r"^calendar@.*$"),
]


@dataclass
class EmailPartition:
    internal_emails: list[str] = field(default_factory=list)
    external_emails: list[str] = field(default_factory=list)
    external_domains: list[str] = field(default_factory=list)
    ignored_emails: list[str] = field(default_factory=list)

    @property
    def is_external(self) -> bool:
        return len(self.external_emails) > 0


@dataclass
class MeetingClassification:
    is_external: Optional[bool]
    external_domains: list[str]
    classification_source: str
    reason: Optional[str] = None


def extract_domain(email: str) -> Optional[str]:
    m = re.search(r"@(.+)$", (email or "").lower())
    return m.group(1) if m else None


def should_ignore_email(email: str, patterns: Optional[Sequence[Pattern[str]]] = None) -> bool:
    low = (email or "").lower()
    return any(p.search(low) for p in (patterns if patterns is not None else IGNORE_EMAILS))


def is_internal_domain(domain: str, internal_domains: Optional[Iterable[str]] = None) -> bool:
    d = (domain or "").lower()
    allow = internal_domains if internal_domains is not None else settings.INTERNAL_DOMAINS
    for internal in allow:
        internal = internal.lower()
        if d == internal or d.endswith("." + internal):
            return True
    return False


def classify_emails(
    emails: Iterable[Optional[str]],
    internal_domains: Optional[Iterable[str]] = None,
    ignore_patterns: Optional[Sequence[Pattern[str]]] = None,
) -> EmailPartition:
    out = EmailPartition()
    allow = list(internal_domains) if internal_domains is not None else None
    seen_domains: set[str] = set()

    for email in emails:
        if not email or not isinstance(email, str):
            continue
        e = email.strip().lower()
        if not e:
            continue

        if should_ignore_email(e, ignore_patterns):
            out.ignored_emails.append(e)
            continue

        domain = extract_domain(e)
        if not domain:
            # malformed address: external, but there is no domain to report
            out.external_emails.append(e)
            continue

        if is_internal_domain(domain, allow):
            out.internal_emails.append(e)
        else:
            out.external_emails.append(e)
            if domain not in seen_domains:
                seen_domains.add(domain)
                out.external_domains.append(domain)

    return out


def classify_meeting(
    organizer: Optional[str],
    attendees: Optional[Iterable[Optional[str]]],
    internal_domains: Optional[Iterable[str]] = None,
    ignore_patterns: Optional[Sequence[Pattern[str]]] = None,
) -> MeetingClassification:
    all_emails = [e for e in ([organizer] if organizer else []) + list(attendees or []) if e]

    if not all_emails:
        return MeetingClassification(
            is_external=None,
            external_domains=[],
            classification_source=SOURCE_UNKNOWN,
            reason="No participants found",
        )

    part = classify_emails(all_emails, internal_domains, ignore_patterns)
    return MeetingClassification(
        is_external=part.is_external,
        external_domains=part.external_domains,
        classification_source=SOURCE_CALENDAR,
    )


def unknown_classification(reason: str) -> MeetingClassification:
    return MeetingClassification(
        is_external=None,
        external_domains=[],
        classification_source=SOURCE_UNKNOWN,
        reason=reason,
    )
