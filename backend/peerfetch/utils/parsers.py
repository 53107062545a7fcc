"""Parsing utilities that turn raw user input into normalized values.

The main entry point is `parse_student_id`, which splits a student ID
such as `25EL011` into batch, branch, roll and current study year.
The remaining helpers normalize directory filters and profile fields
(skill lists, URLs) before they reach the services.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional
from urllib.parse import urlparse


BRANCH_NAMES = {
    'CP': 'Computer',
    'EL': 'Electronics',
    'EC': 'Electronics and Communication',
    'EE': 'Electrical',
    'ME': 'Mechanical',
    'CE': 'Civil',
    'PE': 'Production',
    'IT': 'IT',
}

# Branches split into self-financed (SFI) and grant-in-aid (GIA) intakes.
BRANCH_VARIANTS = {
    'CP': ('SFI', 'GIA'),
    'ME': ('SFI', 'GIA'),
}

STUDENT_ID_PATTERN = re.compile(r'^(\d{2})(' + '|'.join(BRANCH_NAMES) + r')(\d{3})$')
STUDENT_ID_FORMAT_ERROR = 'Invalid format. Use format like 25EL011 (year + branch + roll)'

MIN_YEAR = 1
MAX_YEAR = 4
MAX_TAG_LENGTH = 60


@dataclass(frozen=True)
class StudentIdInfo:
    """Fields derived from a student ID."""
    student_id: str
    batch: int
    branch: str
    roll: str
    year: int


def normalize_student_id(raw: str) -> str:
    """Strip whitespace and upper-case a student ID."""
    return (raw or '').strip().upper()


def parse_student_id(raw: str, today: Optional[date] = None) -> StudentIdInfo:
    """Parse `raw` into a `StudentIdInfo` or raise ValueError.

    The two leading digits are the batch (admission year, 2000-based),
    followed by a branch code from `BRANCH_NAMES` and a three-digit roll
    number. The study year is computed against `today` and clamped to
    the 1..4 range so alumni and future batches still get a valid year.
    """
    student_id = normalize_student_id(raw)
    match = STUDENT_ID_PATTERN.match(student_id)
    if not match:
        raise ValueError(STUDENT_ID_FORMAT_ERROR)
    batch_yy, branch, roll = match.groups()
    batch = 2000 + int(batch_yy)
    current_year = (today or date.today()).year
    year = current_year - batch + 1
    return StudentIdInfo(
        student_id=student_id,
        batch=batch,
        branch=branch,
        roll=roll,
        year=max(MIN_YEAR, min(MAX_YEAR, year)),
    )


def branch_display_name(branch: str, variant: Optional[str] = None) -> str:
    """Return the human readable branch name, e.g. `Computer GIA`.

    A variant is only accepted for branches listed in `BRANCH_VARIANTS`;
    anything else raises ValueError.
    """
    name = BRANCH_NAMES[branch]
    if not variant:
        return name
    variant = variant.strip().upper()
    if variant not in BRANCH_VARIANTS.get(branch, ()):
        raise ValueError(f'invalid branch variant {variant!r} for {branch}')
    return f'{name} {variant}'


def normalize_branch_filter(raw: Optional[str]) -> Optional[str]:
    """Map a directory branch filter (`CP`, `cp-gia`, `ME-SFI`) to its code.

    Returns None for an empty filter and raises ValueError for an unknown
    branch.
    """
    if raw is None or not raw.strip():
        return None
    value = raw.strip().upper()
    code, _, variant = value.partition('-')
    if code not in BRANCH_NAMES:
        raise ValueError(f'unknown branch: {raw}')
    if variant and variant not in BRANCH_VARIANTS.get(code, ()):
        raise ValueError(f'unknown branch: {raw}')
    return code


def parse_year_filter(raw) -> Optional[int]:
    """Validate a directory year filter (1-4)."""
    year = _coerce_int(raw)
    if raw is not None and str(raw).strip() != '' and year is None:
        raise ValueError('year must be an integer')
    if year is not None and not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError(f'year must be between {MIN_YEAR} and {MAX_YEAR}')
    return year


def parse_tag_filter(raw: Optional[str]) -> Optional[List[str]]:
    """Split a comma separated directory filter (`Debate,NSS`) into case-folded tags."""
    if raw is None:
        return None
    tags = [t.strip().casefold() for t in raw.split(',')]
    return [t for t in tags if t] or None


def normalize_tag_list(items: Optional[Iterable[str]], max_items: int = 30,
                       max_length: int = MAX_TAG_LENGTH) -> Optional[List[str]]:
    """Clean a list of skills/extracurriculars.

    Entries are stripped, blanks dropped and duplicates removed
    (case-insensitive, first spelling wins). An empty result becomes None
    so the stored column is cleared. Over-long entries raise ValueError.
    """
    if items is None:
        return None
    out = []
    seen = set()
    for item in items:
        if not isinstance(item, str):
            raise ValueError('list entries must be strings')
        text = item.strip()
        if not text or text.lower() in seen:
            continue
        if len(text) > max_length:
            raise ValueError(f'entries must be at most {max_length} characters')
        seen.add(text.lower())
        out.append(text)
    if len(out) > max_items:
        raise ValueError(f'at most {max_items} entries allowed')
    return out or None


def normalize_url(raw: Optional[str]) -> Optional[str]:
    """Return a stripped http(s) URL, None for blank input, or raise ValueError."""
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError('URL must start with http:// or https://')
    return value


def _coerce_int(val):
    try:
        return int(val) if val is not None and str(val).strip() != '' else None
    except (TypeError, ValueError):
        return None
