"""Sequence-record store over the local file system.

A record path is either one part file or a directory of part files. Each part
file holds one JSON object per line, ``{"key": ..., "value": ...}``; JSON keeps
``int`` keys apart from ``str`` keys. Entries whose name starts with ``_`` are
job markers (``_SUCCESS``) and never data.
"""

from __future__ import annotations

import json
import shutil
import typing as t
from pathlib import Path

from kodar.errors import StorageError
from kodar.utils import get_logger

logger = get_logger(__name__)

Key = t.Union[int, str]
Record = t.Tuple[Key, str]

MARKER_PREFIX = "_"
SUCCESS_MARKER = "_SUCCESS"


def is_marker(name: str) -> bool:
    return name.startswith(MARKER_PREFIX)


def _encode(key: Key, value: str) -> str:
    if isinstance(key, bool) or not isinstance(key, (int, str)):
        raise StorageError(f"unsupported record key type: {type(key).__name__}")
    return json.dumps({"key": key, "value": str(value)}, ensure_ascii=False)


class RecordStore:
    """Read and write sequence records; no state is cached between calls."""

    def write(self, path: t.Union[str, Path], key: Key, value: str) -> None:
        self.write_all(path, [(key, value)])

    def write_all(self, path: t.Union[str, Path], records: t.Iterable[Record]) -> int:
        p = Path(path)
        n = 0
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            with open(p, "a", encoding="utf-8") as f:
                for key, value in records:
                    f.write(_encode(key, value))
                    f.write("\n")
                    n += 1
        except OSError as e:
            raise StorageError(f"cannot write records to {p}: {e}") from e
        return n

    def read_all(self, path: t.Union[str, Path]) -> t.Iterator[Record]:
        """Lazily yield every record under ``path``.

        Directories are read part file by part file in name order. Call again
        to iterate again; each call reopens the files.
        """
        p = Path(path)
        if not p.exists():
            raise StorageError(f"record path does not exist: {p}")
        return self._iter_records(p)

    def _iter_records(self, p: Path) -> t.Iterator[Record]:
        if p.is_dir():
            files = [p / name for name in sorted(self.list_entries(p))]
        else:
            files = [p]
        for fp in files:
            if fp.is_dir():
                yield from self._iter_records(fp)
                continue
            try:
                with open(fp, "r", encoding="utf-8") as f:
                    for lineno, line in enumerate(f, start=1):
                        if not line.strip():
                            continue
                        try:
                            obj = json.loads(line)
                        except json.JSONDecodeError as e:
                            raise StorageError(f"corrupt record at {fp}:{lineno}: {e}") from e
                        if not isinstance(obj, dict) or "key" not in obj or "value" not in obj:
                            raise StorageError(f"corrupt record at {fp}:{lineno}: expected key and value")
                        yield obj["key"], obj["value"]
            except OSError as e:
                raise StorageError(f"cannot read records from {fp}: {e}") from e

    def list_entries(self, path: t.Union[str, Path]) -> t.Set[str]:
        p = Path(path)
        try:
            return {child.name for child in p.iterdir() if not is_marker(child.name)}
        except OSError as e:
            raise StorageError(f"cannot list {p}: {e}") from e

    def delete_path(self, path: t.Union[str, Path]) -> None:
        p = Path(path)
        try:
            if p.is_dir() and not p.is_symlink():
                shutil.rmtree(p)
            elif p.exists() or p.is_symlink():
                p.unlink()
        except OSError as e:
            raise StorageError(f"cannot delete {p}: {e}") from e
        logger.debug("store.delete: path=%s", p)

    def mark_success(self, path: t.Union[str, Path]) -> None:
        p = Path(path)
        try:
            p.mkdir(parents=True, exist_ok=True)
            (p / SUCCESS_MARKER).touch()
        except OSError as e:
            raise StorageError(f"cannot mark {p} as complete: {e}") from e

    def dump_text(self, path: t.Union[str, Path], dest: t.Union[str, Path]) -> int:
        """Write the records under ``path`` as readable ``key<TAB>value`` lines."""
        d = Path(dest)
        n = 0
        try:
            d.parent.mkdir(parents=True, exist_ok=True)
            with open(d, "w", encoding="utf-8") as f:
                for key, value in self.read_all(path):
                    f.write(f"{key}\t{value}\n")
                    n += 1
        except OSError as e:
            raise StorageError(f"cannot dump records to {d}: {e}") from e
        return n

    def exists(self, path: t.Union[str, Path]) -> bool:
        return Path(path).exists()
