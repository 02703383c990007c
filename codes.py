"""
Sequential identifier generation for students, subjects and classes.

Every generator scans the identifiers that already exist, takes the highest
numeric suffix behind its prefix and adds one. There is no stored counter.
Suffixes that are not plain digits are legacy data and are skipped.

Scan-then-write is only safe while one writer holds the scope, so callers
wrap generation and the insert in ``scope_lock``. The unique indexes created
by ``database.ensure_indexes`` catch writers in other processes.
"""
import re
import threading
from typing import Dict, Iterable, Optional

from config import MAJORS, Major
from results import Found, Invalid, Outcome

NIM_SEQUENCE_WIDTH = 4
CODE_SEQUENCE_WIDTH = 3
CLASS_CODE_PREFIX = "KLS"

_DIGITS = re.compile(r"[0-9]+")

_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def scope_lock(scope: str) -> threading.Lock:
    """Return the process-wide lock for an identifier scope."""
    with _locks_guard:
        lock = _locks.get(scope)
        if lock is None:
            lock = _locks[scope] = threading.Lock()
        return lock


def lookup_major(name: Optional[str]) -> Outcome[Major]:
    for major in MAJORS:
        if major.name == name:
            return Found(major)
    known = ", ".join(m.name for m in MAJORS)
    return Invalid(f"Unknown major: {name!r}", {"major": f"Major must be one of: {known}"})


def major_for_code(code: Optional[str]) -> Optional[Major]:
    if not code:
        return None
    for major in MAJORS:
        if code.startswith(major.subject_prefix):
            return major
    return None


def next_code(prefix: str, existing: Iterable[Optional[str]], width: int) -> str:
    max_sequence = 0
    for code in existing:
        if not code or not code.startswith(prefix):
            continue
        suffix = code[len(prefix):]
        if not _DIGITS.fullmatch(suffix):
            continue
        max_sequence = max(max_sequence, int(suffix))
    return f"{prefix}{max_sequence + 1:0{width}d}"


def nim_prefix(major: Major, batch: int) -> str:
    return f"{major.nim_code}{batch}"


def generate_nim(major: Major, batch: int, existing_nims: Iterable[Optional[str]]) -> str:
    """NIM format AABBBBCCCC: major code, batch year, 4-digit sequence."""
    return next_code(nim_prefix(major, batch), existing_nims, NIM_SEQUENCE_WIDTH)


def generate_subject_code(major: Major, existing_codes: Iterable[Optional[str]]) -> str:
    return next_code(major.subject_prefix, existing_codes, CODE_SEQUENCE_WIDTH)


def generate_class_code(existing_codes: Iterable[Optional[str]]) -> str:
    return next_code(CLASS_CODE_PREFIX, existing_codes, CODE_SEQUENCE_WIDTH)
