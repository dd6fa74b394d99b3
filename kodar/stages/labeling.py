from __future__ import annotations

import typing as t
from dataclasses import dataclass
from pathlib import Path

from kodar.config import Workspace
from kodar.engines.categorizer import Categorizer
from kodar.engines.fingerprint import FingerprintEngine
from kodar.engines.topics import TopicLabeler
from kodar.errors import StorageError, call_engine
from kodar.records import extract_fields, split_group
from kodar.store import RecordStore
from kodar.utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TopicModel:
    labeler: TopicLabeler
    label_file: str = "label"


@dataclass(frozen=True)
class SemanticFingerprint:
    new_session: t.Callable[[], FingerprintEngine]
    label_file: str = "labelCortical"


LabelingStrategy = t.Union[TopicModel, SemanticFingerprint]


def _write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise StorageError(f"cannot write {path}: {e}") from e


class ClusterLabeler:
    """Name every sorted cluster group under ``mr_jobs/*/sort``.

    Per group: split into documents, extract keywords and title, enrich with a
    category, buffer, label the whole buffer once, then append
    ``(label, group value)`` to ``named_clusters/<algorithm>``.
    """

    def __init__(
        self,
        strategy: LabelingStrategy,
        store: RecordStore,
        workspace: Workspace,
        categorizer: Categorizer,
    ):
        self.strategy = strategy
        self.store = store
        self.workspace = workspace
        self.categorizer = categorizer

    @property
    def documents_dir(self) -> Path:
        return self.workspace.topmodel / "documents"

    def document_for(self, block: str) -> str:
        fields = extract_fields(block)
        category = call_engine("categorize", self.categorizer.categorize, fields.keywords)
        return fields.title + "\n" + fields.keywords + "\n" + category

    def label_documents(self, documents: t.Sequence[str]) -> str:
        s = self.strategy
        if isinstance(s, TopicModel):
            return call_engine("label", s.labeler.label, list(documents))
        session = call_engine("fingerprint_session", s.new_session)
        for doc in documents:
            call_engine("add_labels", session.add_labels, doc)
        return call_engine("get_label", session.get_label)

    def label_group(self, value: str, docs_dir: Path) -> str:
        documents = []
        for i, block in enumerate(split_group(value)):
            doc = self.document_for(block)
            _write_text(docs_dir / f"doc{i}", doc)
            documents.append(doc)
        label = self.label_documents(documents)
        _write_text(docs_dir / self.strategy.label_file, label)
        return label

    def label_clusters(self) -> t.Dict[str, int]:
        self.store.delete_path(self.documents_dir)
        self.store.delete_path(self.workspace.named_clusters)

        named: t.Dict[str, int] = {}
        if not self.store.exists(self.workspace.mr_jobs):
            logger.warning("label: nothing to label, %s missing", self.workspace.mr_jobs)
            return named

        for algorithm in sorted(self.store.list_entries(self.workspace.mr_jobs)):
            sort_dir = self.workspace.mr_jobs / algorithm / "sort"
            target = self.workspace.named_clusters / algorithm
            n = 0
            for part in sorted(self.store.list_entries(sort_dir)):
                logger.info("label.read: %s", sort_dir / part)
                for cluster_id, value in self.store.read_all(sort_dir / part):
                    docs_dir = self.documents_dir / algorithm / f"docs{n}"
                    label = self.label_group(value, docs_dir)
                    self.store.write(target, label, value)
                    logger.info("label.%s: cluster=%s docs=%d label=%r", algorithm, cluster_id,
                                len(split_group(value)), label)
                    n += 1
            named[algorithm] = n
        return named
