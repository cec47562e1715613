"""DNS brute force source: resolve every word in the built-in wordlist."""

from typing import List, Optional

from subenum.scanner.wordlists import COMMON_SUBDOMAINS, flatten
from subenum.util.types import SourceName

from .base import ResolvingSource


class DNSBruteSource(ResolvingSource):
    name = SourceName.DNS
    label = "DNS brute force"

    def __init__(self, resolver, concurrency: int, timeout: float, words: Optional[List[str]] = None):
        super().__init__(resolver, concurrency, timeout)
        self.words = list(words) if words is not None else flatten(COMMON_SUBDOMAINS)

    def names_for(self, target: str) -> List[str]:
        return [f"{word}.{target}" for word in self.words]
