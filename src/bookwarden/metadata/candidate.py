# ABOUTME: A provider's proposed metadata for one book, with confidence, provenance and cover link.
# ABOUTME: The unit of exchange between metadata providers and the merge engine.

from dataclasses import dataclass

from bookwarden.metadata.types import BookMetadata


@dataclass
class MetadataCandidate:
    """Metadata a provider proposes for a book.

    Attributes:
        metadata: The proposed values. Absent fields never overwrite anything.
        confidence: Match confidence in [0.0, 1.0].
        source: Provider name.
        source_id: The provider's identifier for the matched record.
        cover_url: Where the provider's cover image can be downloaded, if any.
    """

    metadata: BookMetadata
    confidence: float
    source: str
    source_id: str
    cover_url: str | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be between 0.0 and 1.0, got {self.confidence}")
