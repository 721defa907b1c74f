"""Ordered, case-insensitive set of discovered search domains."""

from typing import Any, Iterable, Iterator, List, Optional
from urllib.parse import urlparse


class SearchDomainSet:
    """Domains in discovery order; duplicates differing only by case are ignored."""

    def __init__(self, initial: Optional[Iterable[str]] = None):
        self._domains: List[str] = []
        self._seen = set()
        if initial:
            self.update(initial)

    def add(self, domain: Any) -> bool:
        """Add one domain. Returns True if it was new."""
        if not isinstance(domain, str):
            return False
        label = domain.strip()
        if not label:
            return False
        normalized = label.lower()
        if normalized in self._seen:
            return False
        self._seen.add(normalized)
        self._domains.append(label)
        return True

    def update(self, domains: Iterable[Any]) -> List[str]:
        """Add several domains; returns the ones that were new."""
        return [d.strip() for d in domains if self.add(d)]

    def clear(self) -> None:
        self._domains = []
        self._seen = set()

    @property
    def latest(self) -> Optional[str]:
        return self._domains[-1] if self._domains else None

    def to_list(self) -> List[str]:
        return list(self._domains)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._domains))

    def __len__(self) -> int:
        return len(self._domains)

    def __contains__(self, domain: object) -> bool:
        return isinstance(domain, str) and domain.strip().lower() in self._seen


def domains_from_citations(citations: Iterable[Any]) -> List[str]:
    """Host names of citation URLs, without a leading ``www.``."""
    hosts = []
    for citation in citations:
        if not isinstance(citation, dict):
            continue
        url = citation.get("url")
        if not isinstance(url, str):
            continue
        host = urlparse(url).hostname
        if host:
            hosts.append(host[4:] if host.startswith("www.") else host)
    return hosts
