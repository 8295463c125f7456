# ABOUTME: Builds provider search terms from book metadata and file names.
# ABOUTME: Cleans download-site noise, splits concatenated words, truncates on word boundaries.

import re

import wordninja

from bookwarden.metadata.types import BookMetadata
from bookwarden.models import BookFormat

MAX_SEARCH_TERM_LENGTH = 60

# Spaceless strings shorter than this (e.g. "Dune", "1984") are left alone.
_MIN_CONCAT_LENGTH = 8

_CAMEL_CASE_RE = re.compile(r"[a-z][A-Z]")
_CAMEL_LOWER_UPPER_RE = re.compile(r"([a-z\d])([A-Z])")
_CAMEL_UPPER_SEQUENCE_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_LETTER_DIGIT_RE = re.compile(r"([a-zA-Z])(\d)")
_DIGIT_LETTER_RE = re.compile(r"(\d)([a-zA-Z])")
_SEPARATOR_RE = re.compile(r"[-_]")
_PARENTHESIZED_RE = re.compile(r"\s?\(.*?\)")
# Anything but letters, digits, '#' and spaces; \w admits '_' so it is excluded explicitly
_SEARCH_NOISE_RE = re.compile(r"[^\w# ]|_")

_COMIC_FORMATS = frozenset({BookFormat.CBZ, BookFormat.CBR, BookFormat.CB7})


def clean_file_name(file_name: str | None) -> str | None:
    """Strip "(Z-Library)", parenthesized author names and the extension.

    "Laws of UX (Jon Yablonski) (Z-Library).pdf" -> "Laws of UX"
    """
    if file_name is None:
        return None
    cleaned = file_name.replace("(Z-Library)", "").strip()
    cleaned = _PARENTHESIZED_RE.sub("", cleaned).strip()
    dot = cleaned.rfind(".")
    if dot > 0:
        cleaned = cleaned[:dot].strip()
    return cleaned


def clean_and_truncate_search_term(term: str, limit: int = MAX_SEARCH_TERM_LENGTH) -> str:
    """Drop punctuation and cut to at most limit characters on a word boundary."""
    term = _SEARCH_NOISE_RE.sub("", term).strip()
    if len(term) <= limit:
        return term
    truncated = ""
    for word in term.split():
        if len(truncated) + len(word) + 1 > limit:
            break
        truncated = f"{truncated} {word}" if truncated else word
    return truncated


def build_comic_search_term(metadata: BookMetadata | None) -> str | None:
    """"Series #N" for comics, or None without a series name and number."""
    if metadata is None or not metadata.series_name or not metadata.series_name.strip():
        return None
    if metadata.series_number is None:
        return None
    number = metadata.series_number
    issue = str(int(number)) if float(number).is_integer() else str(number)
    return f"{metadata.series_name} #{issue}"


def _needs_splitting(text: str) -> bool:
    """Whether a string looks like CamelCase-, underscore- or run-together words."""
    text = text.strip()
    if not text:
        return False
    if "_" in text or _CAMEL_CASE_RE.search(text):
        return True
    segments = text.split("-") if "-" in text else [text]
    return any(" " not in seg and len(seg) >= _MIN_CONCAT_LENGTH for seg in segments)


def _split_camel_case(text: str) -> list[str]:
    result = _CAMEL_LOWER_UPPER_RE.sub(r"\1_SPLIT_\2", text)
    result = _CAMEL_UPPER_SEQUENCE_RE.sub(r"\1_SPLIT_\2", result)
    result = _LETTER_DIGIT_RE.sub(r"\1_SPLIT_\2", result)
    result = _DIGIT_LETTER_RE.sub(r"\1_SPLIT_\2", result)
    parts = [p for p in result.split("_SPLIT_") if p]
    return parts if parts else [text]


def split_concatenated(text: str) -> str:
    """Split "SteveBerry-TheTemplarLegacy" style names into space-separated words.

    CamelCase and separators are split first; all-lowercase runs that are
    still long go through wordninja's unigram model.
    """
    if not _needs_splitting(text):
        return text

    words: list[str] = []
    for segment in _SEPARATOR_RE.split(text):
        segment = segment.strip()
        if not segment:
            continue
        for part in _split_camel_case(segment):
            if part.islower() and len(part) >= _MIN_CONCAT_LENGTH:
                words.extend(wordninja.split(part) or [part])
            else:
                words.append(part)
    return " ".join(words)


def build_search_term(
    metadata: BookMetadata | None,
    file_name: str | None = None,
    fmt: BookFormat | None = None,
) -> str | None:
    """Choose and clean the term used to query metadata providers.

    Comics with a series and issue number search as "Series #N" so a
    renamed archive still finds its issue. Other books use the title,
    falling back to the cleaned file name.
    """
    term: str | None = None
    if fmt in _COMIC_FORMATS:
        term = build_comic_search_term(metadata)
    if term is None and metadata is not None and metadata.title and metadata.title.strip():
        term = metadata.title
    if term is None:
        cleaned = clean_file_name(file_name)
        term = split_concatenated(cleaned) if cleaned else None
    if not term:
        return None
    return clean_and_truncate_search_term(term) or None
