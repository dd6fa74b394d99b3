import pytest

from kodar.errors import StorageError
from kodar.store import RecordStore


def test_write_and_read_keep_key_types(tmp_path):
    store = RecordStore()
    target = tmp_path / "seq" / "part-m-00000"
    store.write(target, 7, "seven")
    store.write(target, "7", "text seven")
    assert list(store.read_all(target)) == [(7, "seven"), ("7", "text seven")]
    # re-iterable by reopening
    assert list(store.read_all(target)) == list(store.read_all(target))


def test_directory_read_skips_markers(tmp_path):
    store = RecordStore()
    d = tmp_path / "out"
    store.write_all(d / "part-r-00001", [(2, "b")])
    store.write_all(d / "part-r-00000", [(1, "a")])
    store.mark_success(d)
    assert store.list_entries(d) == {"part-r-00000", "part-r-00001"}
    assert list(store.read_all(d)) == [(1, "a"), (2, "b")]


def test_delete_is_idempotent(tmp_path):
    store = RecordStore()
    d = tmp_path / "gone"
    store.write(d / "part", 1, "x")
    store.delete_path(d)
    store.delete_path(d)
    assert not d.exists()


def test_missing_path_raises_storage_error(tmp_path):
    store = RecordStore()
    with pytest.raises(StorageError):
        store.read_all(tmp_path / "nope")
    with pytest.raises(StorageError):
        store.list_entries(tmp_path / "nope")


def test_line_without_key_is_a_storage_error(tmp_path):
    store = RecordStore()
    target = tmp_path / "part-r-00000"
    target.write_text('{"value": "orphan"}\n', encoding="utf-8")
    with pytest.raises(StorageError, match="expected key and value"):
        list(store.read_all(target))


def test_dump_text_writes_tab_separated_lines(tmp_path):
    store = RecordStore()
    d = tmp_path / "points"
    store.write_all(d / "part-m-0", [(0, "3"), (1, "4")])
    store.mark_success(d)
    n = store.dump_text(d, tmp_path / "points.txt")
    assert n == 2
    assert (tmp_path / "points.txt").read_text(encoding="utf-8") == "0\t3\n1\t4\n"
