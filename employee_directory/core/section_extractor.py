"""
Locate the "Experience" section of extracted profile text.

The boundary policy is an ordered list of matchers. Each has a priority;
levels are tried in ascending order and the earliest hit inside the first
level that hits at all ends the section. When nothing hits, a character
cap ends it instead. Extraction never raises.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple

from employee_directory.core.config import DEFAULT_STOP_HEADINGS, Settings

logger = logging.getLogger(__name__)

# A line that looks like the next employer ("Acme Widgets Ltd") or a bare year range
# ("2019 - 2022", "2020 – Present").
TRAILING_ENTRY_RE = re.compile(
    r"\n(?:[\w ,.&'-]+?\b(?:ltd|inc|llc)\b|\d{4}\s*[-–]\s*(?:\d{4}|present)\b)",
    re.IGNORECASE,
)


@dataclass
class ExperienceSection:
    text: str
    start: int
    end: int
    heading_found: bool
    boundary: str


class BoundaryMatcher:
    name = "boundary"
    priority = 0

    def find(self, text: str, section_start: int, heading_end: int) -> Optional[int]:
        """Absolute index in ``text`` where the section should end, or None."""
        raise NotImplementedError


class KeywordBoundary(BoundaryMatcher):
    """Ends the section at the first following stop heading (whole words, any case)."""

    def __init__(self, keywords: List[str], priority: int = 0, name: str = "stop_heading"):
        self.keywords = [k for k in (kw.strip() for kw in keywords) if k]
        self.priority = priority
        self.name = name
        self._pattern: Optional[Pattern] = None
        if self.keywords:
            alternatives = "|".join(re.escape(k) for k in self.keywords)
            self._pattern = re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)

    def find(self, text: str, section_start: int, heading_end: int) -> Optional[int]:
        if self._pattern is None:
            return None
        m = self._pattern.search(text, heading_end)
        return m.start() if m else None


class PatternBoundary(BoundaryMatcher):
    """Ends the section at a regex hit, searched only ``search_offset`` chars past the heading."""

    def __init__(
        self,
        pattern: Pattern = TRAILING_ENTRY_RE,
        search_offset: int = 500,
        priority: int = 1,
        name: str = "trailing_entry",
    ):
        self.pattern = pattern
        self.search_offset = search_offset
        self.priority = priority
        self.name = name

    def find(self, text: str, section_start: int, heading_end: int) -> Optional[int]:
        m = self.pattern.search(text, max(heading_end, section_start + self.search_offset))
        return m.start() if m else None


def default_boundaries(
    stop_headings: Optional[List[str]] = None,
    pattern_search_offset: int = 500,
) -> List[BoundaryMatcher]:
    if stop_headings is None:
        stop_headings = DEFAULT_STOP_HEADINGS
    return [
        KeywordBoundary(stop_headings, priority=0),
        PatternBoundary(TRAILING_ENTRY_RE, search_offset=pattern_search_offset, priority=1),
    ]


@dataclass
class SectionPolicy:
    heading: str = "experience"
    strong_heading: Optional[str] = "more experience"
    boundaries: List[BoundaryMatcher] = field(default_factory=default_boundaries)
    section_char_cap: int = 12000
    fallback_char_cap: int = 10000

    @classmethod
    def from_settings(cls, settings: Settings) -> "SectionPolicy":
        return cls(
            heading=settings.section_heading,
            strong_heading=settings.section_strong_heading or None,
            boundaries=default_boundaries(
                settings.section_stop_headings, settings.section_pattern_search_offset
            ),
            section_char_cap=settings.section_char_cap,
            fallback_char_cap=settings.section_fallback_char_cap,
        )


def _find_word(text: str, keyword: Optional[str]) -> Optional[Tuple[int, int]]:
    if not keyword or not keyword.strip():
        return None
    m = re.search(rf"\b{re.escape(keyword.strip())}\b", text, re.IGNORECASE)
    return (m.start(), m.end()) if m else None


def _find_heading(text: str, policy: SectionPolicy) -> Optional[Tuple[int, int]]:
    """The stronger heading wins whenever it appears, even after the plain one."""
    return _find_word(text, policy.strong_heading) or _find_word(text, policy.heading)


def _find_boundary(
    text: str, section_start: int, heading_end: int, boundaries: List[BoundaryMatcher]
) -> Tuple[Optional[int], Optional[str]]:
    for level in sorted({b.priority for b in boundaries}):
        hits = []
        for matcher in boundaries:
            if matcher.priority != level:
                continue
            idx = matcher.find(text, section_start, heading_end)
            if idx is not None:
                hits.append((idx, matcher.name))
        if hits:
            return min(hits)
    return None, None


def _fallback_section(text: str, cap: int) -> ExperienceSection:
    start = len(text) - len(text.lstrip())
    end = min(len(text), start + cap)
    return ExperienceSection(
        text=text[start:end].strip(),
        start=start,
        end=end,
        heading_found=False,
        boundary="fallback_cap",
    )


def extract_section(text: str, policy: Optional[SectionPolicy] = None) -> ExperienceSection:
    """
    Cut the experience section out of document text.

    Guarantees ``0 <= start <= end <= len(text)`` and a non-empty result
    whenever ``text`` has any non-whitespace character.
    """
    policy = policy or SectionPolicy()
    text = text or ""

    if not text.strip():
        return ExperienceSection(text="", start=0, end=0, heading_found=False, boundary="empty")

    heading = _find_heading(text, policy)
    if heading is None:
        logger.warning(
            f"Could not find '{policy.heading}' section heading; using first {policy.fallback_char_cap} chars"
        )
        return _fallback_section(text, policy.fallback_char_cap)

    start, heading_end = heading
    cap_end = min(len(text), start + policy.section_char_cap)
    stop, boundary = _find_boundary(text, start, heading_end, policy.boundaries)

    if stop is not None and stop <= cap_end:
        end = stop
    else:
        end, boundary = cap_end, "char_cap"

    section = text[start:end].strip()
    logger.info(f"Experience section [{start}:{end}] ({len(section)} chars), ended by {boundary}")
    return ExperienceSection(text=section, start=start, end=end, heading_found=True, boundary=boundary)
