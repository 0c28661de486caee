"""LinkedIn URL helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

LINKEDIN_PATTERNS = {
    "company": re.compile(r"linkedin\.com/company/([^/?#]+)", re.IGNORECASE),
    "person": re.compile(r"linkedin\.com/in/([^/?#]+)", re.IGNORECASE),
    "event": re.compile(r"linkedin\.com/events/([^/?#]+)", re.IGNORECASE),
}
URL_SEGMENTS = {"company": "company", "person": "in", "event": "events"}

NAME_PATTERN = re.compile(r"^([^-–|]+)")
TITLE_PATTERN = re.compile(r"[-–|]\s*(.+?)(?:\s*[-–|]|$)")


@dataclass
class LinkedInUrl:
    url: str
    detected_type: Optional[str] = None
    profile_id: Optional[str] = None
    matches_expected: bool = True

    @property
    def is_valid(self) -> bool:
        return self.detected_type is not None

    @property
    def standardized_url(self) -> Optional[str]:
        if not self.detected_type or not self.profile_id:
            return None
        return f"https://www.linkedin.com/{URL_SEGMENTS[self.detected_type]}/{self.profile_id}"


def validate_linkedin_url(url: str, expected_type: Optional[str] = None) -> LinkedInUrl:
    """
    Detect the kind of LinkedIn URL (company, person or event) and its id.

    Args:
        url: Any URL.
        expected_type: "company", "person" or "event"; sets ``matches_expected``.
    """
    for kind, pattern in LINKEDIN_PATTERNS.items():
        match = pattern.search(url or "")
        if match:
            return LinkedInUrl(
                url=url,
                detected_type=kind,
                profile_id=match.group(1),
                matches_expected=expected_type is None or expected_type == kind,
            )
    return LinkedInUrl(url=url, matches_expected=expected_type is None)


def split_profile_title(title: str) -> tuple[str, Optional[str]]:
    """
    Split a search-result title like "Jan Jansen - Festival Director - Acme | LinkedIn".

    Returns:
        Tuple of (name, job title or None).
    """
    name_match = NAME_PATTERN.match(title or "")
    name = name_match.group(1).strip() if name_match else ""
    title_match = TITLE_PATTERN.search(title or "")
    job_title = title_match.group(1).strip() if title_match else None
    return name, job_title or None
