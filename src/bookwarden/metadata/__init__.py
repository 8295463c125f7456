# ABOUTME: Metadata package: the metadata value objects, merge/lock engine and provider contract.
# ABOUTME: Exports the types used throughout Bookwarden.

from bookwarden.metadata.candidate import MetadataCandidate
from bookwarden.metadata.merge import MergeResult, merge_metadata
from bookwarden.metadata.provider import MetadataProvider, fetch_candidates
from bookwarden.metadata.types import BookMetadata, MetadataField, MetadataRecord

__all__ = [
    "BookMetadata",
    "MergeResult",
    "MetadataCandidate",
    "MetadataField",
    "MetadataProvider",
    "MetadataRecord",
    "fetch_candidates",
    "merge_metadata",
]
