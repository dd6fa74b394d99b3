from kodar.config import Workspace
from kodar.records import GROUP_DELIMITER, author_value, keyword_value, split_group
from kodar.stages.join import (
    join_authors,
    join_cluster_results,
    join_keywords,
    map_points_to_clusters,
    sort_and_group,
)
from kodar.store import RecordStore


def test_points_to_clusters():
    assert list(map_points_to_clusters([(4, "0"), (1, "2")])) == [(0, 4), (2, 1)]


def test_inner_join_never_grows():
    assignments = {0: 1, 2: 1, 3: 0}
    keywords = [(i, keyword_value(i, f"kw{i}")) for i in range(5)]
    clustered = join_keywords(keywords, assignments)
    assert len(clustered) <= len(assignments)
    by_cluster = dict(clustered)
    assert split_group(by_cluster[1]) == [keyword_value(0, "kw0"), keyword_value(2, "kw2")]
    assert split_group(by_cluster[0]) == [keyword_value(3, "kw3")]


def test_join_authors_appends_marker_per_block():
    clustered = [(1, keyword_value(0, "a") + GROUP_DELIMITER + keyword_value(9, "b"))]
    authors = {0: author_value("Ana", "http://a", "http://p", "T")}
    out = list(join_authors(clustered, authors))
    assert out == [(1, keyword_value(0, "a") + " Author:" + authors[0])]


def test_sort_and_group_partitions_input():
    records = [(2, "c1"), (0, "a1"), (1, "b1"), (0, "a2"), (2, "c2"), (1, "b2")]
    groups = sort_and_group(records)
    assert list(groups) == [0, 1, 2]
    assert groups == {0: ["a1", "a2"], 1: ["b1", "b2"], 2: ["c1", "c2"]}
    flat = [(cid, v) for cid, vs in groups.items() for v in vs]
    assert sorted(flat) == sorted(records)


def _snapshot(root):
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


def _seed_workspace(tmp_path):
    store = RecordStore()
    ws = Workspace.create(tmp_path / "home")
    store.write_all(ws.kmeans / "clusteredPoints" / "part-m-0", [(0, "0"), (1, "1"), (0, "2")])
    store.write_all(ws.keywords_long / "part-m-00000", [(i, keyword_value(i, f"kw{i}")) for i in range(3)])
    store.write_all(ws.authors_long / "part-m-00000",
                    [(i, author_value(f"n{i}", "http://a", "http://p", f"t{i}")) for i in range(3)])
    return store, ws


def test_join_stage_is_rerunnable(tmp_path):
    store, ws = _seed_workspace(tmp_path)
    res = join_cluster_results(store, ws, ws.kmeans)
    assert (res.points, res.clustered_keywords, res.clustered_data, res.groups) == (3, 2, 2, 2)

    before = _snapshot(ws.mr_jobs)
    store.delete_path(ws.mr_jobs / "kmeans")
    join_cluster_results(store, ws, ws.kmeans)
    assert _snapshot(ws.mr_jobs) == before

    sort_dir = ws.mr_jobs / "kmeans" / "sort"
    assert store.list_entries(sort_dir) == {"part-r-00000", "part-r-00001"}
    [(cid, value)] = list(store.read_all(sort_dir / "part-r-00000"))
    assert cid == 0 and len(split_group(value)) == 2
