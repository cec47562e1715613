"""Permutation source.

Combines environment-style prefixes and suffixes ("dev-api", "stagingold")
plus numbered hosts ("www1" .. "ftp10") and resolves the results.
"""

from typing import List

from subenum.scanner.wordlists import (
    NUMBERED_PREFIXES,
    NUMBERED_RANGE,
    PERMUTATION_PREFIXES,
    PERMUTATION_SUFFIXES,
)
from subenum.util.types import SourceName

from .base import ResolvingSource


def generate_permutations(target: str) -> List[str]:
    """Candidate hostnames under target, in generation order, without repeats."""
    labels = []
    for prefix in PERMUTATION_PREFIXES:
        labels.append(prefix)
        for suffix in PERMUTATION_SUFFIXES:
            if prefix == suffix:
                continue
            labels.append(f"{prefix}-{suffix}")
            labels.append(f"{prefix}{suffix}")
    for prefix in NUMBERED_PREFIXES:
        for i in NUMBERED_RANGE:
            labels.append(f"{prefix}{i}")

    names = []
    seen = set()
    for label in labels:
        name = f"{label}.{target}"
        if name not in seen:
            seen.add(name)
            names.append(name)
    return names


class PermuteSource(ResolvingSource):
    name = SourceName.PERMUTE
    label = "Permutation"

    def names_for(self, target: str) -> List[str]:
        return generate_permutations(target)
