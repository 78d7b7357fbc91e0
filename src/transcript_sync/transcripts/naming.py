"""Artifact file naming: ``<Company>_<mm-dd-yy>_<hh-MM> <AM|PM>.pdf``.

The company is guessed from the meeting title first, then from the first
non-personal e-mail domain among the participants. Naming never fails: any
irregularity falls back to a timestamp-based name.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from src.transcript_sync.transcripts.schemas import parse_timestamp

logger = structlog.get_logger(__name__)

DEFAULT_COMPANY = "Meeting"
ARTIFACT_EXTENSION = ".pdf"

PERSONAL_DOMAINS = {
    "gmail.com": "Personal",
    "yahoo.com": "Personal",
    "hotmail.com": "Personal",
    "outlook.com": "Personal",
}

COMMON_WORDS = frozenset({
    "meeting", "call", "sync", "standup", "discussion", "chat", "talk",
    "weekly", "daily", "monthly", "team", "one", "on", "check", "in",
    "follow", "up", "review", "planning", "session", "the", "and", "or",
    "with", "for", "about", "regarding", "quick", "brief",
})

# Ordered: "with Acme", "Acme call", "Acme - kickoff"
_TITLE_PATTERNS = [
    re.compile(r"(?:with|@|-)\s*([A-Z][a-zA-Z\s&]+?)(?:\s|$|meeting|call|sync|standup)", re.IGNORECASE),
    re.compile(r"([A-Z][a-zA-Z\s&]+?)\s+(?:meeting|call|sync|standup|discussion)", re.IGNORECASE),
    re.compile(r"^([A-Z][a-zA-Z\s&]+?)\s*[-:]", re.IGNORECASE),
]


def generate_file_name(
    timestamp: datetime | str | int | float | None,
    title: str | None,
    participants: Sequence[Any] | None,
) -> str:
    """Build the artifact filename for one transcript."""
    try:
        company = extract_company_name(title, participants)
        return f"{company}_{format_date_time(timestamp)}{ARTIFACT_EXTENSION}"
    except Exception:
        logger.warning("naming.fallback_used", title=title, exc_info=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        return f"transcript_{stamp}{ARTIFACT_EXTENSION}"


def format_date_time(timestamp: datetime | str | int | float | None) -> str:
    """Format as ``mm-dd-yy_hh-MM AM`` (dashes keep the name filesystem-safe)."""
    moment = parse_timestamp(timestamp) or datetime.now(timezone.utc)
    return moment.strftime("%m-%d-%y_%I-%M %p")


def extract_company_name(title: str | None, participants: Sequence[Any] | None) -> str:
    from_title = extract_company_from_title(title)
    if from_title != DEFAULT_COMPANY:
        return from_title

    for participant in participants or []:
        if isinstance(participant, str) and "@" in participant:
            company = domain_to_company_name(participant.split("@", 1)[1])
            if company and company != "Personal":
                return company

    return DEFAULT_COMPANY


def extract_company_from_title(title: str | None) -> str:
    if not title or not isinstance(title, str):
        return DEFAULT_COMPANY

    for pattern in _TITLE_PATTERNS:
        match = pattern.search(title)
        if match and match.group(1):
            company = match.group(1).strip()
            if company.lower() not in COMMON_WORDS and len(company) > 1:
                cleaned = clean_company_name(company)
                if cleaned:
                    return cleaned

    return DEFAULT_COMPANY


def domain_to_company_name(domain: str | None) -> str:
    if not domain:
        return "Unknown"

    domain = domain.strip().lower()
    if domain in PERSONAL_DOMAINS:
        return PERSONAL_DOMAINS[domain]

    main_part = domain.split(".")[0]
    if not main_part:
        return "Unknown"
    # Short labels are usually abbreviations (ibm.com -> IBM)
    if len(main_part) <= 3:
        return main_part.upper()
    return main_part[0].upper() + main_part[1:]


def clean_company_name(company: str) -> str:
    company = re.sub(r"[^a-zA-Z0-9\s&]", "", company)
    company = re.sub(r"\s+", "", company)
    return company[:20]
