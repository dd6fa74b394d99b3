from __future__ import annotations

import typing as t
from dataclasses import dataclass
from pathlib import Path

from kodar.config import PipelineConfig, Workspace
from kodar.engines.clustering import POINTS_DIR, BatchClusteringEngine
from kodar.errors import NoFinalPartitionError, call_engine
from kodar.store import RecordStore
from kodar.utils import get_logger

logger = get_logger(__name__)

FINAL_TAG = "final"
VECTORS_DUMP = "tfidf-vectors.txt"
POINTS_DUMP = "clusteredPoints.txt"


@dataclass(frozen=True)
class DensityReport:
    hard: float
    fuzzy: float


def locate_final_partition(entries: t.Iterable[str]) -> str:
    """First entry whose name contains ``final``, in iteration order."""
    for name in entries:
        if FINAL_TAG in name:
            return name
    raise NoFinalPartitionError("no entry containing 'final' among clustering outputs")


def final_partition_path(store: RecordStore, run_dir: Path) -> Path:
    try:
        name = locate_final_partition(sorted(store.list_entries(run_dir)))
    except NoFinalPartitionError as e:
        raise NoFinalPartitionError(f"{run_dir}: {e}") from e
    return run_dir / name


def generate_sparse_vectors(engine: BatchClusteringEngine, workspace: Workspace, cfg: PipelineConfig) -> Path:
    p = cfg.vectorize
    logger.info(
        "cluster.vectorize: min_df=%d max_df_pct=%d ngram=%d weighting=%s normalize=%s",
        p.min_doc_freq, p.max_doc_freq_percent, p.ngram_size, p.weighting, p.normalize,
    )
    return call_engine("vectorize", engine.vectorize, workspace.keywords_text, workspace.sparse, p)


def execute_kmeans(engine: BatchClusteringEngine, workspace: Workspace, k: int, cfg: PipelineConfig) -> Path:
    p = cfg.kmeans
    logger.info("cluster.kmeans: k=%d distance=%s max_iter=%d delta=%g", k, p.distance, p.max_iterations, p.convergence_delta)
    return call_engine("hard_cluster", engine.hard_cluster, workspace.tfidf_vectors, workspace.kmeans, k, p)


def execute_fuzzy_kmeans(
    engine: BatchClusteringEngine,
    store: RecordStore,
    workspace: Workspace,
    cfg: PipelineConfig,
) -> Path:
    seeds = final_partition_path(store, workspace.kmeans)
    p = cfg.fuzzy_kmeans
    logger.info(
        "cluster.fkmeans: seeds=%s m=%.2f max_iter=%d delta=%g",
        seeds.name, p.fuzziness, p.max_iterations, p.convergence_delta,
    )
    return call_engine("fuzzy_cluster", engine.fuzzy_cluster, workspace.tfidf_vectors, seeds, workspace.fkmeans, p)


def evaluate_clusters(engine: BatchClusteringEngine, store: RecordStore, workspace: Workspace) -> DensityReport:
    store.delete_path(workspace.evaluation)
    hard = final_partition_path(store, workspace.kmeans)
    fuzzy = final_partition_path(store, workspace.fkmeans)
    scores = call_engine("evaluate_density", engine.evaluate_density, hard, fuzzy)
    report = DensityReport(hard=float(scores["hard"]), fuzzy=float(scores["fuzzy"]))

    store.write_all(workspace.evaluation / "part-r-00000", [
        (workspace.kmeans.name, repr(report.hard)),
        (workspace.fkmeans.name, repr(report.fuzzy)),
    ])
    store.mark_success(workspace.evaluation)
    logger.info("cluster.evaluate: inter_cluster_density kmeans=%.4f fkmeans=%.4f", report.hard, report.fuzzy)
    return report


def dump_vectors(store: RecordStore, workspace: Workspace) -> Path:
    """Readable copy of the term vectors next to ``tfidf-vectors/``."""
    dest = workspace.sparse / VECTORS_DUMP
    n = store.dump_text(workspace.tfidf_vectors, dest)
    logger.info("cluster.dump: vectors=%d dest=%s", n, dest)
    return dest


def dump_clustered_points(store: RecordStore, workspace: Workspace) -> Path:
    """Readable copy of the hard run's point assignments."""
    dest = workspace.kmeans / POINTS_DUMP
    n = store.dump_text(workspace.kmeans / POINTS_DIR, dest)
    logger.info("cluster.dump: points=%d dest=%s", n, dest)
    return dest
