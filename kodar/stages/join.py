"""Reassemble per-cluster document bundles from the clustering output.

Three inner joins followed by a sort/group, each writing its own directory
under ``mr_jobs/<algorithm>/``:

    points_to_clusters   (pointId, clusterId)
    clusteredKeywords    (clusterId, keyword blocks)
    clusteredData        (clusterId, keyword + author blocks)
    sort                 one part file per clusterId
"""

from __future__ import annotations

import typing as t
from dataclasses import dataclass
from pathlib import Path

from kodar.config import Workspace
from kodar.engines.clustering import POINTS_DIR
from kodar.records import join_group, merge_author, row_id_of, split_group
from kodar.store import RecordStore
from kodar.utils import get_logger

logger = get_logger(__name__)

POINTS_TO_CLUSTERS = "points_to_clusters"
CLUSTERED_KEYWORDS = "clusteredKeywords"
CLUSTERED_DATA = "clusteredData"
SORT = "sort"

Record = t.Tuple[t.Any, str]


@dataclass
class JoinResult:
    algorithm: str
    points: int
    clustered_keywords: int
    clustered_data: int
    groups: int


def map_points_to_clusters(points: t.Iterable[t.Tuple[t.Any, str]]) -> t.Iterator[t.Tuple[int, int]]:
    """Turn clustering output ``(clusterId, pointName)`` into ``(pointId, clusterId)``."""
    for cluster_id, point_name in points:
        yield int(point_name), int(cluster_id)


def join_keywords(
    keywords: t.Iterable[t.Tuple[int, str]],
    assignments: t.Mapping[int, int],
) -> t.List[t.Tuple[int, str]]:
    """Inner join keyword records with cluster assignments, one record per cluster."""
    groups: t.Dict[int, t.List[str]] = {}
    dropped = 0
    for row_id, value in keywords:
        cid = assignments.get(int(row_id))
        if cid is None:
            dropped += 1
            continue
        groups.setdefault(cid, []).append(value)
    if dropped:
        logger.info("join.keywords: dropped=%d rows without cluster", dropped)
    return [(cid, join_group(values)) for cid, values in groups.items()]


def join_authors(
    clustered: t.Iterable[t.Tuple[int, str]],
    authors: t.Mapping[int, str],
) -> t.Iterator[t.Tuple[int, str]]:
    """Append the author record of every block, matched by its embedded row id."""
    for cid, value in clustered:
        merged = []
        for block in split_group(value):
            author = authors.get(row_id_of(block))
            if author is None:
                logger.warning("join.authors: no author for row=%d cluster=%s", row_id_of(block), cid)
                continue
            merged.append(merge_author(block, author))
        if merged:
            yield cid, join_group(merged)


def sort_and_group(records: t.Iterable[Record]) -> t.Dict[t.Any, t.List[str]]:
    """Stable sort by cluster id; insertion order is kept inside each group."""
    indexed = sorted(enumerate(records), key=lambda pair: (pair[1][0], pair[0]))
    groups: t.Dict[t.Any, t.List[str]] = {}
    for _, (cid, value) in indexed:
        groups.setdefault(cid, []).append(value)
    return groups


def join_cluster_results(store: RecordStore, workspace: Workspace, run_dir: Path) -> JoinResult:
    algorithm = run_dir.name
    base = workspace.mr_jobs / algorithm
    store.delete_path(base)

    points_dir = base / POINTS_TO_CLUSTERS
    n_points = store.write_all(points_dir / "part-m-00000",
                               map_points_to_clusters(store.read_all(run_dir / POINTS_DIR)))
    store.mark_success(points_dir)

    assignments = {int(k): int(v) for k, v in store.read_all(points_dir)}
    kw_dir = base / CLUSTERED_KEYWORDS
    n_kw = store.write_all(kw_dir / "part-r-00000",
                           join_keywords(store.read_all(workspace.keywords_long), assignments))
    store.mark_success(kw_dir)

    authors = {int(k): v for k, v in store.read_all(workspace.authors_long)}
    data_dir = base / CLUSTERED_DATA
    n_data = store.write_all(data_dir / "part-r-00000", join_authors(store.read_all(kw_dir), authors))
    store.mark_success(data_dir)

    sort_dir = base / SORT
    groups = sort_and_group(store.read_all(data_dir))
    for cid, values in groups.items():
        store.write_all(sort_dir / f"part-r-{int(cid):05d}", ((cid, v) for v in values))
    store.mark_success(sort_dir)

    logger.info(
        "join.%s: points=%d clustered_keywords=%d clustered_data=%d groups=%d",
        algorithm, n_points, n_kw, n_data, len(groups),
    )
    return JoinResult(algorithm=algorithm, points=n_points, clustered_keywords=n_kw,
                      clustered_data=n_data, groups=len(groups))
