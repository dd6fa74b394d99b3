import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional

from kodar.config import PipelineConfig, Workspace, load_config, resolve_home
from kodar.engines.categorizer import Categorizer, NullCategorizer, WordNetCategorizer
from kodar.engines.clustering import BatchClusteringEngine, LocalClusteringEngine
from kodar.engines.fingerprint import fingerprint_factory
from kodar.engines.topics import TopicModelLabeler
from kodar.errors import call_engine
from kodar.stages.clustering import (
    DensityReport,
    dump_clustered_points,
    dump_vectors,
    evaluate_clusters,
    execute_fuzzy_kmeans,
    execute_kmeans,
    generate_sparse_vectors,
)
from kodar.stages.export import ResultExporter, export_results
from kodar.stages.ingest import IngestResult, split_dataset
from kodar.stages.join import JoinResult, join_cluster_results
from kodar.stages.labeling import ClusterLabeler, LabelingStrategy, SemanticFingerprint, TopicModel
from kodar.store import RecordStore
from kodar.utils import get_logger, wait_for_service

logger = get_logger(__name__)


@dataclass
class Collaborators:
    """Per-run instances of every external collaborator."""

    store: RecordStore
    engine: BatchClusteringEngine
    strategy: LabelingStrategy
    categorizer: Categorizer
    exporter: ResultExporter

    def close(self) -> None:
        """Release the fingerprint HTTP session, if this run opened one."""
        if isinstance(self.strategy, SemanticFingerprint):
            close = getattr(self.strategy.new_session, "close", None)
            if close is not None:
                close()


@dataclass
class RunResult:
    workspace: Workspace
    ingest: IngestResult
    evaluation: Optional[DensityReport] = None
    joins: List[JoinResult] = field(default_factory=list)
    named_clusters: Dict[str, int] = field(default_factory=dict)
    exported: List[Path] = field(default_factory=list)


def build_strategy(cfg: PipelineConfig) -> LabelingStrategy:
    lab = cfg.labeling
    if lab.mode == "semantic_fingerprint":
        return SemanticFingerprint(new_session=fingerprint_factory(lab.semantic_fingerprint))
    return TopicModel(labeler=TopicModelLabeler(lab.topic_model, random_state=cfg.clustering.random_state))


def build_collaborators(cfg: PipelineConfig) -> Collaborators:
    store = RecordStore()
    cat_cfg = cfg.labeling.categorizer
    categorizer = WordNetCategorizer(max_categories=cat_cfg.max_categories) if cat_cfg.enabled else NullCategorizer()
    return Collaborators(
        store=store,
        engine=LocalClusteringEngine(store, random_state=cfg.clustering.random_state),
        strategy=build_strategy(cfg),
        categorizer=categorizer,
        exporter=ResultExporter(store, cfg.export),
    )


def _wait_infra(cfg: PipelineConfig) -> None:
    """Wait for the fingerprint service before a run that needs it."""
    fp = cfg.labeling.semantic_fingerprint
    if cfg.labeling.mode == "semantic_fingerprint" and fp.health_url:
        call_engine("wait_for_service", wait_for_service, fp.health_url)


def run(
    cfg: PipelineConfig,
    dataset_path: str,
    *,
    collaborators: Optional[Collaborators] = None,
) -> RunResult:
    """Execute every stage in order; the first failure aborts the run.

    Collaborators built here are closed when the run ends; injected ones
    belong to the caller.
    """
    if collaborators is not None:
        return _run_stages(cfg, dataset_path, collaborators)
    c = build_collaborators(cfg)
    try:
        return _run_stages(cfg, dataset_path, c)
    finally:
        c.close()


def _run_stages(cfg: PipelineConfig, dataset_path: str, c: Collaborators) -> RunResult:
    ws = Workspace.create(resolve_home(cfg))
    k = cfg.clustering.k
    logger.info("config loaded home=%s k=%d mode=%s evaluate=%s", ws.home, k, cfg.labeling.mode, cfg.clustering.evaluate)

    _wait_infra(cfg)

    t0 = time.monotonic()
    ingest = split_dataset(dataset_path, c.store, ws)
    logger.info("ingested rows=%d took_ms=%d", ingest.rows, int((time.monotonic()-t0)*1000))

    t1 = time.monotonic()
    generate_sparse_vectors(c.engine, ws, cfg)
    dump_vectors(c.store, ws)
    execute_kmeans(c.engine, ws, k, cfg)
    execute_fuzzy_kmeans(c.engine, c.store, ws, cfg)
    logger.info("clustered took_ms=%d", int((time.monotonic()-t1)*1000))

    result = RunResult(workspace=ws, ingest=ingest)

    # Evaluation only scores the partitions; no joins, labels or exports.
    if cfg.clustering.evaluate:
        result.evaluation = evaluate_clusters(c.engine, c.store, ws)
        return result

    dump_clustered_points(c.store, ws)
    t2 = time.monotonic()
    for run_dir in (ws.kmeans, ws.fkmeans):
        result.joins.append(join_cluster_results(c.store, ws, run_dir))
    logger.info("joined runs=%d took_ms=%d", len(result.joins), int((time.monotonic()-t2)*1000))

    t3 = time.monotonic()
    labeler = ClusterLabeler(c.strategy, c.store, ws, c.categorizer)
    result.named_clusters = labeler.label_clusters()
    logger.info("labelled clusters=%s took_ms=%d", result.named_clusters, int((time.monotonic()-t3)*1000))

    result.exported = export_results(c.store, ws, c.exporter)
    logger.info("OK: %d result files under %s", len(result.exported), ws.result)
    return result


def run_once(
    dataset_path: str,
    *,
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    collaborators: Optional[Collaborators] = None,
) -> RunResult:
    """Load config and execute the pipeline once for ``dataset_path``."""
    run_id = uuid.uuid4().hex[:8]
    logger.info("=== run start id=%s dataset=%s ===", run_id, dataset_path)

    try:
        cfg = load_config(config_path, overrides)
        return run(cfg, dataset_path, collaborators=collaborators)
    except Exception as e:
        logger.error("Pipeline execution failed: %s", e)
        raise
    finally:
        logger.info("=== run end id=%s ===", run_id)
