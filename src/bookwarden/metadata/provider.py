# ABOUTME: MetadataProvider protocol defining the contract for external metadata sources.
# ABOUTME: fetch_candidates queries several providers and interleaves their results round-robin.

import logging
from collections.abc import Iterable
from itertools import chain, zip_longest
from typing import Protocol, runtime_checkable

from bookwarden.metadata.candidate import MetadataCandidate

logger = logging.getLogger(__name__)


@runtime_checkable
class MetadataProvider(Protocol):
    """Protocol for metadata lookup services.

    Concrete HTTP clients live outside the core; anything with a name and
    a search(term) method returning ranked candidates qualifies.
    """

    @property
    def name(self) -> str: ...

    def search(self, term: str) -> list[MetadataCandidate]: ...


def fetch_candidates(
    providers: Iterable[MetadataProvider], term: str
) -> list[MetadataCandidate]:
    """Query every provider and interleave the results.

    The output takes the first candidate of each provider, then the
    second of each, and so on. A provider that raises contributes nothing.
    """
    per_provider: list[list[MetadataCandidate]] = []
    for provider in providers:
        try:
            per_provider.append(list(provider.search(term)))
        except Exception as exc:
            logger.warning("Provider %s failed for %r: %s", provider.name, term, exc)
    interleaved = chain.from_iterable(zip_longest(*per_provider))
    return [candidate for candidate in interleaved if candidate is not None]
