"""
Fact verification guard for AI-generated summaries.

Before a summary is marked publishable, its checkable facts are compared
against the articles it was generated from:

  numbers   5.2, 1,200 (commas stripped), Unicode digits folded to ASCII
  dates     2024-03-15, 15/03/2024, 15 March 2024, March 15, 2024,
            March 2024, 15 March -> normalised to YYYY-MM-DD / YYYY-MM / --MM-DD
  entities  runs of two or more capitalised words (proper-noun heuristic),
            minus leading sentence-initial words, weekdays and months

A number or date missing from the sources is an issue: one fabricated
statistic is enough to send the summary to review. Entities match loosely
(substring either way, case-insensitive) so "Biden" verifies "Joe Biden",
and an unmatched entity only lowers confidence.

Extraction is driven by a ScriptProfile. The month-name and capitalisation
heuristics only make sense for Latin script, so Sinhala, Tamil and other
non-Latin summaries get the numeric profile: numbers and numeric dates are
still checked (digits are script-neutral), entities and month names are not.

The guard is advisory. It never raises on a bad summary; the orchestrator
stores needs_review/confidence on the summary row.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from ..schemas.validation import FactCheckResult, VerifiedCount

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.8

_NUMBER_RE = re.compile(r"\b\d[\d,]*(?:\.\d+)?\b")
_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/.](\d{1,2})[/.](\d{4}|\d{2})\b")
_ORDINAL = r"(?:st|nd|rd|th)?"

ENGLISH_MONTHS: Dict[str, int] = {
    "January": 1, "February": 2, "March": 3, "April": 4, "May": 5, "June": 6,
    "July": 7, "August": 8, "September": 9, "October": 10, "November": 11, "December": 12,
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "Jun": 6, "Jul": 7, "Aug": 8,
    "Sep": 9, "Sept": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}

_WEEKDAYS = {"Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"}

# Capitalised only because they start a sentence (or name a day/month)
ENGLISH_STOPLIST: FrozenSet[str] = frozenset({
    "The", "A", "An", "In", "On", "At", "As", "By", "For", "From", "Of", "To",
    "With", "After", "Before", "During", "Since", "Until", "Over", "Under",
    "And", "But", "Or", "So", "Yet", "If", "When", "While", "Where", "Why", "How",
    "This", "That", "These", "Those", "It", "Its", "He", "She", "They", "We",
    "I", "You", "His", "Her", "Their", "Our", "My", "Your", "There", "Here",
    "According", "Meanwhile", "However", "Also", "Officials", "Police",
    "Yesterday", "Today", "Tomorrow", "Last", "Next", "Earlier", "Later",
    "Breaking", "Update", "Report", "Reports",
}) | frozenset(_WEEKDAYS) | frozenset(ENGLISH_MONTHS)

_ENTITY_RE = re.compile(r"\b[A-Z][A-Za-z'\-]*(?:[ \t]+[A-Z][A-Za-z'\-]*)+")

# Unicode blocks used to pick a profile
_SCRIPT_RANGES = {
    "sinhala": (0x0D80, 0x0DFF),
    "tamil": (0x0B80, 0x0BFF),
}
LANGUAGE_SCRIPTS = {"en": "latin", "si": "sinhala", "ta": "tamil"}


@dataclass
class ScriptProfile:
    """Extraction settings for one script family."""
    name: str
    month_names: Dict[str, int] = field(default_factory=dict)
    stoplist: FrozenSet[str] = frozenset()
    entity_pattern: Optional[re.Pattern] = None
    date_patterns: List[Tuple[re.Pattern, str]] = field(default_factory=list, init=False)

    def __post_init__(self):
        self.date_patterns = [(_ISO_DATE_RE, "ymd"), (_NUMERIC_DATE_RE, "dmy")]
        if self.month_names:
            months = "|".join(sorted((re.escape(m) for m in self.month_names), key=len, reverse=True))
            self.date_patterns += [
                (re.compile(rf"\b(\d{{1,2}}){_ORDINAL}\s+({months})\.?,?\s+(\d{{4}})\b"), "d_month_y"),
                (re.compile(rf"\b({months})\.?\s+(\d{{1,2}}){_ORDINAL},?\s+(\d{{4}})\b"), "month_d_y"),
                (re.compile(rf"\b({months})\.?,?\s+(\d{{4}})\b"), "month_y"),
                (re.compile(rf"\b(\d{{1,2}}){_ORDINAL}\s+({months})\b"), "d_month"),
                (re.compile(rf"\b({months})\.?\s+(\d{{1,2}}){_ORDINAL}\b(?![.,]?\d)"), "month_d"),
            ]

    @property
    def checks(self) -> List[str]:
        checks = ["numbers", "dates"]
        if self.entity_pattern is not None:
            checks.append("entities")
        return checks


LATIN_PROFILE = ScriptProfile(
    name="latin",
    month_names=ENGLISH_MONTHS,
    stoplist=ENGLISH_STOPLIST,
    entity_pattern=_ENTITY_RE,
)


def numeric_profile(script: str) -> ScriptProfile:
    return ScriptProfile(name=script)


# ── Text helpers ─────────────────────────────────────────────────────────────

def fold_digits(text: str) -> str:
    """Replace every Unicode decimal digit (Sinhala, Tamil, Devanagari...) with ASCII."""
    if text.isascii():
        return text
    return "".join(str(unicodedata.decimal(ch)) if ch.isdecimal() else ch for ch in text)


def detect_script(text: str) -> str:
    """Dominant script among the letters of text: latin, sinhala, tamil or other."""
    counts = {"latin": 0, "sinhala": 0, "tamil": 0, "other": 0}
    for ch in text:
        if not ch.isalpha():
            continue
        cp = ord(ch)
        for script, (lo, hi) in _SCRIPT_RANGES.items():
            if lo <= cp <= hi:
                counts[script] += 1
                break
        else:
            counts["latin" if cp < 0x0250 else "other"] += 1
    if not any(counts.values()):
        return "latin"
    return max(counts, key=counts.get)


def profile_for(text: str, lang: Optional[str] = None) -> ScriptProfile:
    script = LANGUAGE_SCRIPTS.get(lang or "", None) or detect_script(text)
    return LATIN_PROFILE if script == "latin" else numeric_profile(script)


def _normalize_number(raw: str) -> str:
    token = raw.replace(",", "")
    whole, dot, frac = token.partition(".")
    whole = whole.lstrip("0") or "0"
    return f"{whole}{dot}{frac}"


def _make_date(year: Optional[int], month: int, day: Optional[int]) -> Optional[str]:
    if not 1 <= month <= 12:
        return None
    if day is not None and not 1 <= day <= 31:
        return None
    if year is None:
        return f"--{month:02d}-{day:02d}"
    if day is None:
        return f"{year:04d}-{month:02d}"
    return f"{year:04d}-{month:02d}-{day:02d}"


def _scan_dates(text: str, profile: ScriptProfile) -> Tuple[Set[str], str]:
    """Normalised dates plus the text with every matched date blanked out."""
    dates: Set[str] = set()
    months = profile.month_names
    for pattern, kind in profile.date_patterns:
        def _take(m: re.Match) -> str:
            g = m.groups()
            if kind == "ymd":
                value = _make_date(int(g[0]), int(g[1]), int(g[2]))
            elif kind == "dmy":
                year = int(g[2])
                value = _make_date(year + 2000 if year < 100 else year, int(g[1]), int(g[0]))
            elif kind == "d_month_y":
                value = _make_date(int(g[2]), months[g[1]], int(g[0]))
            elif kind == "month_d_y":
                value = _make_date(int(g[2]), months[g[0]], int(g[1]))
            elif kind == "month_y":
                value = _make_date(int(g[1]), months[g[0]], None)
            elif kind == "d_month":
                value = _make_date(None, months[g[1]], int(g[0]))
            else:
                value = _make_date(None, months[g[0]], int(g[1]))
            if value is None:
                return m.group(0)
            dates.add(value)
            return " "
        text = pattern.sub(_take, text)
    return dates, text


# ── Extractors (pure) ────────────────────────────────────────────────────────

def extract_dates(text: str, profile: ScriptProfile = LATIN_PROFILE) -> Set[str]:
    return _scan_dates(fold_digits(text), profile)[0]


def extract_numbers(text: str, profile: ScriptProfile = LATIN_PROFILE) -> Set[str]:
    """Numbers outside of recognised dates, commas stripped."""
    _, masked = _scan_dates(fold_digits(text), profile)
    return {_normalize_number(n) for n in _NUMBER_RE.findall(masked)}


def extract_entities(text: str, profile: ScriptProfile = LATIN_PROFILE) -> Set[str]:
    """Capitalised multi-word runs with leading stoplisted words removed."""
    if profile.entity_pattern is None:
        return set()
    entities = set()
    for match in profile.entity_pattern.finditer(text):
        words = match.group(0).split()
        while words and words[0] in profile.stoplist:
            words.pop(0)
        if len(words) >= 2:
            entities.add(" ".join(words))
    return entities


def _date_verified(date: str, source_dates: Set[str]) -> bool:
    """A partial date (YYYY-MM, --MM-DD) verifies against any compatible fuller date."""
    if date in source_dates:
        return True
    if date.startswith("--"):
        return any(d.endswith(date[1:]) for d in source_dates)
    if len(date) == 7:
        return any(d.startswith(date + "-") for d in source_dates)
    return False


def _entity_verified(entity: str, source_entities: Iterable[str]) -> bool:
    e = entity.lower()
    return any(e == s or e in s or s in e for s in source_entities)


# ── Guard ────────────────────────────────────────────────────────────────────

class FactVerificationGuard:
    """Scores a summary by how many of its facts appear in the source texts."""

    def __init__(self, min_confidence: float = DEFAULT_MIN_CONFIDENCE):
        self.min_confidence = min_confidence

    def validate(
        self,
        summary_text: str,
        source_texts: List[str],
        lang: Optional[str] = None,
    ) -> FactCheckResult:
        profile = profile_for(summary_text or "", lang)
        # Sources are usually English even for translated summaries; the
        # summary's profile decides which fact classes are compared.
        source_blob = "\n".join(t for t in source_texts if t)

        issues: List[str] = []
        counts: Dict[str, VerifiedCount] = {}

        summary_numbers = extract_numbers(summary_text or "", profile)
        source_numbers = extract_numbers(source_blob, profile)
        # A number written as a date in the source still counts as present
        source_numbers |= {_normalize_number(n) for n in _NUMBER_RE.findall(fold_digits(source_blob))}
        verified = 0
        for number in sorted(summary_numbers):
            if number in source_numbers:
                verified += 1
            else:
                issues.append(f"Unverified number: {number}")
        counts["numbers"] = VerifiedCount(verified=verified, total=len(summary_numbers))

        summary_dates = extract_dates(summary_text or "", profile)
        source_dates = extract_dates(source_blob, profile)
        verified = 0
        for date in sorted(summary_dates):
            if _date_verified(date, source_dates):
                verified += 1
            else:
                issues.append(f"Unverified date: {date}")
        counts["dates"] = VerifiedCount(verified=verified, total=len(summary_dates))

        unverified_entities: List[str] = []
        if "entities" in profile.checks:
            summary_entities = extract_entities(summary_text or "", profile)
            source_entities = {s.lower() for s in extract_entities(source_blob, profile)}
            verified = 0
            for entity in sorted(summary_entities):
                if _entity_verified(entity, source_entities):
                    verified += 1
                else:
                    unverified_entities.append(entity)
            counts["entities"] = VerifiedCount(verified=verified, total=len(summary_entities))

        total = sum(c.total for c in counts.values())
        confidence = 1.0 if total == 0 else sum(c.verified for c in counts.values()) / total

        result = FactCheckResult(
            needs_review=confidence < self.min_confidence or bool(issues),
            confidence=confidence,
            issues=issues,
            verified_counts=counts,
            unverified_entities=unverified_entities,
            script=profile.name,
            checks_run=profile.checks,
        )
        if result.needs_review:
            logger.info(f"Fact check flagged summary: {result.summary()}")
        return result
