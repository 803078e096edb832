"""Copy code sets.

A ``CodeSet`` is the manifest of physical copies belonging to one title.
It is immutable; ``add`` and ``remove`` return a new set.
"""

import re
from typing import Iterable, Iterator, Optional


class CodeSet:
    """Distinct, non-empty copy codes of a single title."""

    __slots__ = ("_codes",)

    def __init__(self, codes: Iterable[str] = ()):
        seen: set[str] = set()
        for raw in codes:
            code = normalize_code(raw)
            if code in seen:
                raise ValueError(f"Duplicate copy code: {code}")
            seen.add(code)
        self._codes = frozenset(seen)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.strip() in self._codes

    def __iter__(self) -> Iterator[str]:
        return iter(self.sorted())

    def __len__(self) -> int:
        return len(self._codes)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CodeSet):
            return self._codes == other._codes
        if isinstance(other, (set, frozenset)):
            return self._codes == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._codes)

    def __repr__(self) -> str:
        return f"CodeSet({self.sorted()!r})"

    def add(self, code: str) -> "CodeSet":
        """Return a new set with ``code`` added."""
        code = normalize_code(code)
        if code in self._codes:
            raise ValueError(f"Duplicate copy code: {code}")
        return CodeSet([*self._codes, code])

    def remove(self, code: str) -> "CodeSet":
        """Return a new set without ``code``."""
        code = normalize_code(code)
        if code not in self._codes:
            raise ValueError(f"Unknown copy code: {code}")
        return CodeSet(self._codes - {code})

    def without(self, codes: Iterable[Optional[str]]) -> set[str]:
        """Codes of this set that are not in ``codes``."""
        return set(self._codes) - {c for c in codes if c}

    def sorted(self) -> list[str]:
        """Codes in lexicographic order."""
        return sorted(self._codes)

    def as_set(self) -> set[str]:
        return set(self._codes)


def normalize_code(code: str) -> str:
    """Strip surrounding whitespace and reject empty codes."""
    if not isinstance(code, str):
        raise ValueError(f"Copy code must be a string, got {type(code).__name__}")
    code = code.strip()
    if not code:
        raise ValueError("Copy code cannot be empty")
    return code


def next_generated_codes(existing: CodeSet, prefix: str, count: int) -> list[str]:
    """Generate ``count`` new codes of the form ``<prefix>-<nnn>``.

    Numbering continues after the highest generated number already in
    ``existing`` so codes are never reused within a title.
    """
    if count < 1:
        raise ValueError("count must be at least 1")
    prefix = normalize_code(prefix)
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")

    highest = 0
    for code in existing:
        match = pattern.match(code)
        if match:
            highest = max(highest, int(match.group(1)))

    return [f"{prefix}-{n:03d}" for n in range(highest + 1, highest + 1 + count)]
