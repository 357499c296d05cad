"""
Dedup index — normalized names of businesses the user already has.
"""

from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")

NAME_KEYS = ("companyName", "company_name", "Company", "Company Name", "name", "Name")


def normalize_name(name) -> str:
    return str(name).strip().casefold()


def row_company_name(row: dict) -> str | None:
    for key in NAME_KEYS:
        value = row.get(key)
        if value is not None and str(value).strip():
            return str(value)
    return None


class DedupIndex:
    """Write-once set of normalized company names, built once per job."""

    def __init__(self, names: Iterable[str]):
        self._names = frozenset(normalize_name(n) for n in names if n and str(n).strip())

    @classmethod
    def from_rows(cls, rows: Iterable[dict] | None) -> "DedupIndex":
        names = []
        for row in rows or []:
            if isinstance(row, dict):
                name = row_company_name(row)
                if name:
                    names.append(name)
        return cls(names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name) -> bool:
        return self.contains(name)

    def contains(self, name) -> bool:
        if name is None:
            return False
        return normalize_name(name) in self._names

    def filter(self, candidates: Iterable[T], key: Callable[[T], str]) -> tuple[list[T], list[T]]:
        """Split candidates into (kept, excluded)."""
        kept: list[T] = []
        excluded: list[T] = []
        for candidate in candidates:
            (excluded if self.contains(key(candidate)) else kept).append(candidate)
        return kept, excluded
