"""Textual layout of keyword, author and merged document records.

Joined documents are plain strings glued together with fixed markers, and the
documents of one cluster are glued with ``GROUP_DELIMITER``. Nothing escapes
these substrings: a keyword, title or author that contains a marker or the
delimiter corrupts record boundaries. All knowledge of the layout lives here.
"""

from __future__ import annotations

import re
import typing as t
from dataclasses import dataclass

from kodar.errors import FieldExtractionError

GROUP_DELIMITER = "2db5c8"

ID_MARKER = "Id: "
CONTENT_MARKER = " Content: "
AUTHOR_MARKER = " Author:"
URI_MARKER = " Uri: "
PUBLICATION_MARKER = " Publication: "
TITLE_MARKER = " Title: "

RESERVED = (GROUP_DELIMITER, CONTENT_MARKER, AUTHOR_MARKER, URI_MARKER, PUBLICATION_MARKER, TITLE_MARKER)

_ID_RE = re.compile(r"^Id: (\d+)")


@dataclass(frozen=True)
class DocumentFields:
    keywords: str
    title: str
    author: str = ""
    author_uri: str = ""
    publication_uri: str = ""
    row_id: t.Optional[int] = None

    def keyword_list(self) -> t.List[str]:
        return [k.strip() for k in self.keywords.split(",") if k.strip()]


def keyword_value(row_id: int, keywords: str) -> str:
    return f"{ID_MARKER}{row_id}{CONTENT_MARKER}{keywords}"


def author_value(name: str, author_uri: str, publication_uri: str, title: str) -> str:
    return f" {name}{URI_MARKER}{author_uri}{PUBLICATION_MARKER}{publication_uri}{TITLE_MARKER}{title}"


def merge_author(keyword_block: str, author: str) -> str:
    return f"{keyword_block}{AUTHOR_MARKER}{author}"


def join_group(blocks: t.Iterable[str]) -> str:
    return GROUP_DELIMITER.join(blocks)


def split_group(value: str) -> t.List[str]:
    return value.split(GROUP_DELIMITER)


def reserved_in(text: str) -> t.List[str]:
    """Markers or delimiters that occur inside a raw field."""
    return [m for m in RESERVED if m in (text or "")]


def row_id_of(block: str) -> int:
    m = _ID_RE.match(block)
    if not m:
        raise FieldExtractionError(f"no row id in block: {block[:80]!r}", marker=ID_MARKER)
    return int(m.group(1))


def _require(block: str, marker: str) -> int:
    at = block.find(marker)
    if at < 0:
        raise FieldExtractionError(f"marker {marker!r} not found in block: {block[:80]!r}", marker=marker)
    return at


def extract_fields(block: str) -> DocumentFields:
    """Split one merged document block into its fields.

    Keywords run from the content marker up to the author marker and keep
    their trailing separator; the title runs from the title marker to the end.
    The URI and publication markers are optional.
    """
    content_at = _require(block, CONTENT_MARKER)
    author_at = _require(block, AUTHOR_MARKER)
    title_at = _require(block, TITLE_MARKER)

    keywords = block[content_at + len(CONTENT_MARKER):author_at + 1]
    title = block[title_at + len(TITLE_MARKER):]

    author_end = title_at
    uri_at = block.find(URI_MARKER, author_at)
    pub_at = block.find(PUBLICATION_MARKER, author_at)
    author_uri = publication_uri = ""
    if 0 <= uri_at < title_at:
        author_end = uri_at
        uri_end = pub_at if 0 <= pub_at < title_at else title_at
        author_uri = block[uri_at + len(URI_MARKER):uri_end]
    if 0 <= pub_at < title_at:
        author_end = min(author_end, pub_at)
        publication_uri = block[pub_at + len(PUBLICATION_MARKER):title_at]
    author = block[author_at + len(AUTHOR_MARKER):author_end].strip()

    m = _ID_RE.match(block)
    return DocumentFields(
        keywords=keywords,
        title=title,
        author=author,
        author_uri=author_uri.strip(),
        publication_uri=publication_uri.strip(),
        row_id=int(m.group(1)) if m else None,
    )
