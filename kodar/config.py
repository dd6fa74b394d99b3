"""Immutable run configuration and working-directory layout."""

from __future__ import annotations

import os
import typing as t
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from kodar.utils import load_yaml, validate_config

DEFAULT_K = 16
KODAR_HOME_ENV = "KODAR_HOME"

LabelingMode = t.Literal["topic_model", "semantic_fingerprint"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class WorkspaceConfig(_Frozen):
    home: t.Optional[str] = None


class ClusteringConfig(_Frozen):
    k: int = Field(DEFAULT_K, ge=1)
    evaluate: bool = False
    random_state: int = 42


class VectorizeConfig(_Frozen):
    min_doc_freq: int = Field(2, ge=1)
    max_doc_freq_percent: int = Field(60, ge=1, le=100)
    ngram_size: int = Field(2, ge=1)
    weighting: t.Literal["tfidf", "tf"] = "tfidf"
    normalize: bool = True


class KMeansConfig(_Frozen):
    distance: t.Literal["cosine"] = "cosine"
    max_iterations: int = Field(100, ge=1)
    convergence_delta: float = Field(0.001, gt=0)


class FuzzyKMeansConfig(_Frozen):
    distance: t.Literal["cosine"] = "cosine"
    fuzziness: float = Field(1.8, gt=1.0)
    max_iterations: int = Field(100, ge=1)
    convergence_delta: float = Field(0.5, gt=0)


class TopicModelConfig(_Frozen):
    num_topics: int = Field(1, ge=1)
    num_terms: int = Field(3, ge=1)
    max_iterations: int = Field(20, ge=1)
    stop_words: t.Optional[str] = "english"


class SemanticFingerprintConfig(_Frozen):
    endpoint: str = "https://api.cortical.io/rest"
    retina: str = "en_associative"
    api_key_env: str = "CORTICAL_API_KEY"
    timeout: float = Field(30.0, gt=0)
    max_keywords: int = Field(3, ge=1)
    health_url: t.Optional[str] = None


class CategorizerConfig(_Frozen):
    enabled: bool = True
    max_categories: int = Field(5, ge=1)


class LabelingConfig(_Frozen):
    mode: LabelingMode = "topic_model"
    topic_model: TopicModelConfig = TopicModelConfig()
    semantic_fingerprint: SemanticFingerprintConfig = SemanticFingerprintConfig()
    categorizer: CategorizerConfig = CategorizerConfig()


class ExportConfig(_Frozen):
    base_uri: str = "http://localhost/kodar/"
    delimiter: str = ","


class PipelineConfig(_Frozen):
    workspace: WorkspaceConfig = WorkspaceConfig()
    clustering: ClusteringConfig = ClusteringConfig()
    vectorize: VectorizeConfig = VectorizeConfig()
    kmeans: KMeansConfig = KMeansConfig()
    fuzzy_kmeans: FuzzyKMeansConfig = FuzzyKMeansConfig()
    labeling: LabelingConfig = LabelingConfig()
    export: ExportConfig = ExportConfig()


def _section(cfg: t.Dict[str, t.Any], name: str) -> t.Dict[str, t.Any]:
    # An empty YAML section (``clustering:``) loads as None.
    sec = cfg.get(name)
    if sec is None:
        sec = cfg[name] = {}
    return sec


def _apply_overrides(cfg: t.Dict[str, t.Any], overrides: t.Optional[t.Dict[str, t.Any]]) -> None:
    if not overrides:
        return
    if overrides.get("k") is not None:
        _section(cfg, "clustering")["k"] = int(overrides["k"])
    if overrides.get("evaluate") is not None:
        _section(cfg, "clustering")["evaluate"] = bool(overrides["evaluate"])
    if overrides.get("labeling_mode") is not None:
        _section(cfg, "labeling")["mode"] = overrides["labeling_mode"]
    if overrides.get("home") is not None:
        _section(cfg, "workspace")["home"] = str(overrides["home"])


def load_config(path: t.Optional[str] = None, overrides: t.Optional[t.Dict[str, t.Any]] = None) -> PipelineConfig:
    """Load, validate and freeze the run configuration.

    ``path`` may be ``None``; every section then takes its defaults.
    """
    cfg = load_yaml(path)
    _apply_overrides(cfg, overrides)
    validate_config(cfg)
    return PipelineConfig.model_validate(cfg)


def resolve_home(cfg: PipelineConfig) -> Path:
    """Working root: config, then $KODAR_HOME, then ./target/kodar_home."""
    home = cfg.workspace.home or os.getenv(KODAR_HOME_ENV)
    if not home:
        home = os.path.join(os.getcwd(), "target", "kodar_home")
    return Path(home)


@dataclass(frozen=True)
class Workspace:
    """Stage-owned directories under one working root."""

    home: Path

    @classmethod
    def create(cls, home: t.Union[str, Path]) -> "Workspace":
        ws = cls(Path(home))
        ws.home.mkdir(parents=True, exist_ok=True)
        ws.result.mkdir(parents=True, exist_ok=True)
        return ws

    @property
    def raw(self) -> Path:
        return self.home / "raw"

    @property
    def sequence(self) -> Path:
        return self.home / "sequence"

    @property
    def sparse(self) -> Path:
        return self.home / "sparse"

    @property
    def kmeans(self) -> Path:
        return self.home / "kmeans"

    @property
    def fkmeans(self) -> Path:
        return self.home / "fkmeans"

    @property
    def evaluation(self) -> Path:
        return self.home / "evaluation"

    @property
    def result(self) -> Path:
        return self.home / "result"

    @property
    def mr_jobs(self) -> Path:
        return self.home / "mr_jobs"

    @property
    def topmodel(self) -> Path:
        return self.home / "topmodel"

    @property
    def named_clusters(self) -> Path:
        return self.home / "named_clusters"

    # sequence streams
    @property
    def keywords_text(self) -> Path:
        return self.sequence / "output"

    @property
    def keywords_long(self) -> Path:
        return self.sequence / "outputLong"

    @property
    def authors_long(self) -> Path:
        return self.sequence / "outputAuthors"

    @property
    def tfidf_vectors(self) -> Path:
        return self.sparse / "tfidf-vectors"
