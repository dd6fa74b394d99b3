from __future__ import annotations

import csv
import typing as t
from dataclasses import dataclass
from pathlib import Path

from kodar.config import Workspace
from kodar.errors import MalformedInputError, StorageError
from kodar.records import author_value, keyword_value, reserved_in
from kodar.store import RecordStore
from kodar.utils import get_logger

logger = get_logger(__name__)

HEADER = ("name", "authorUri", "publicationUri", "title", "keywords")
KEYWORDS_HEADER = ("id", "keywords")
AUTHORS_HEADER = ("id", "name", "authorUri", "publicationUri", "title")


@dataclass
class IngestResult:
    rows: int
    keyword_records: int
    author_records: int


def read_rows(dataset_path: t.Union[str, Path], delimiter: str = ",") -> t.Iterator[t.Dict[str, str]]:
    """Yield dataset rows as dicts, failing on short rows."""
    try:
        f = open(dataset_path, "r", encoding="utf-8", newline="")
    except OSError as e:
        raise StorageError(f"cannot open dataset {dataset_path}: {e}") from e
    with f:
        reader = csv.reader(f, delimiter=delimiter)
        header = next(reader, None)
        if header is None:
            raise MalformedInputError(f"dataset {dataset_path} is empty, header row expected", line=1)
        header = [h.strip() for h in header]
        missing = [h for h in HEADER if h not in header]
        if missing:
            raise MalformedInputError(f"dataset header lacks columns {missing}", line=1)
        for fields in reader:
            if not fields or all(not x.strip() for x in fields):
                continue
            if len(fields) < len(header):
                raise MalformedInputError(
                    f"line {reader.line_num}: expected {len(header)} fields, got {len(fields)}",
                    line=reader.line_num,
                )
            yield dict(zip(header, fields))


def disjoin(dataset_path: t.Union[str, Path], raw_dir: Path, store: RecordStore, delimiter: str = ",") -> int:
    """Split the dataset into ``keywords.csv`` and ``authors.csv`` under ``raw_dir``."""
    store.delete_path(raw_dir)
    rows = 0
    try:
        raw_dir.mkdir(parents=True, exist_ok=True)
        with open(raw_dir / "keywords.csv", "w", encoding="utf-8", newline="") as kf, \
                open(raw_dir / "authors.csv", "w", encoding="utf-8", newline="") as af:
            kw = csv.writer(kf)
            au = csv.writer(af)
            kw.writerow(KEYWORDS_HEADER)
            au.writerow(AUTHORS_HEADER)
            for row_id, row in enumerate(read_rows(dataset_path, delimiter)):
                for col in HEADER:
                    clash = reserved_in(row[col])
                    if clash:
                        logger.warning("ingest.disjoin: row=%d column=%s contains reserved text %s", row_id, col, clash)
                kw.writerow((row_id, row["keywords"].strip()))
                au.writerow((row_id, row["name"].strip(), row["authorUri"].strip(),
                             row["publicationUri"].strip(), row["title"].strip()))
                rows += 1
    except OSError as e:
        raise StorageError(f"cannot write raw split under {raw_dir}: {e}") from e
    logger.info("ingest.disjoin: rows=%d dir=%s", rows, raw_dir)
    return rows


def _read_raw(path: Path) -> t.Iterator[t.List[str]]:
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            reader = csv.reader(f)
            next(reader, None)
            yield from reader
    except OSError as e:
        raise StorageError(f"cannot read {path}: {e}") from e


def keyword_records(raw_dir: Path, *, text_key: bool) -> t.Iterator[t.Tuple[t.Union[int, str], str]]:
    for row_id, keywords in _read_raw(raw_dir / "keywords.csv"):
        rid = int(row_id)
        yield (str(rid) if text_key else rid), keyword_value(rid, keywords)


def author_records(raw_dir: Path) -> t.Iterator[t.Tuple[int, str]]:
    for row_id, name, author_uri, publication_uri, title in _read_raw(raw_dir / "authors.csv"):
        yield int(row_id), author_value(name, author_uri, publication_uri, title)


def split_dataset(
    dataset_path: t.Union[str, Path],
    store: RecordStore,
    workspace: Workspace,
    delimiter: str = ",",
) -> IngestResult:
    rows = disjoin(dataset_path, workspace.raw, store, delimiter)

    store.delete_path(workspace.sequence)
    # Keywords go out twice: text keys feed the vectorizer, numeric keys feed the joins.
    n_text = store.write_all(workspace.keywords_text / "part-m-00000", keyword_records(workspace.raw, text_key=True))
    n_long = store.write_all(workspace.keywords_long / "part-m-00000", keyword_records(workspace.raw, text_key=False))
    n_auth = store.write_all(workspace.authors_long / "part-m-00000", author_records(workspace.raw))
    for d in (workspace.keywords_text, workspace.keywords_long, workspace.authors_long):
        store.mark_success(d)

    logger.info("ingest.sequence: rows=%d keywords_text=%d keywords_long=%d authors=%d", rows, n_text, n_long, n_auth)
    return IngestResult(rows=rows, keyword_records=n_long, author_records=n_auth)
