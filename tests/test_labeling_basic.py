import pytest

from kodar.config import Workspace
from kodar.errors import ExternalEngineError, FieldExtractionError
from kodar.records import author_value, join_group, keyword_value, merge_author
from kodar.stages.labeling import ClusterLabeler, SemanticFingerprint, TopicModel
from kodar.store import RecordStore


class FakeCategorizer:
    def categorize(self, text):
        return "cognition"


class FakeTopics:
    def __init__(self):
        self.calls = []

    def label(self, documents):
        self.calls.append(list(documents))
        return "neural learning"


class FakeSession:
    def __init__(self):
        self.docs = []

    def add_labels(self, document):
        self.docs.append(document)

    def get_label(self):
        return f"fp-{len(self.docs)}"


def _block(i, kws, title):
    return merge_author(keyword_value(i, kws), author_value(f"n{i}", "http://a", "http://p", title))


def _sorted_group(tmp_path, value):
    store = RecordStore()
    ws = Workspace.create(tmp_path / "home")
    store.write(ws.mr_jobs / "kmeans" / "sort" / "part-r-00000", 0, value)
    store.mark_success(ws.mr_jobs / "kmeans" / "sort")
    return store, ws


def test_topic_model_labels_whole_group(tmp_path):
    value = join_group([_block(0, "neural networks", "Deep nets"), _block(1, "learning", "Learning theory")])
    store, ws = _sorted_group(tmp_path, value)
    topics = FakeTopics()

    named = ClusterLabeler(TopicModel(topics), store, ws, FakeCategorizer()).label_clusters()

    assert named == {"kmeans": 1}
    assert list(store.read_all(ws.named_clusters / "kmeans")) == [("neural learning", value)]
    assert topics.calls == [[
        "Deep nets\nneural networks \ncognition",
        "Learning theory\nlearning \ncognition",
    ]]
    docs = ws.topmodel / "documents" / "kmeans" / "docs0"
    assert (docs / "doc0").read_text(encoding="utf-8").startswith("Deep nets")
    assert (docs / "label").read_text(encoding="utf-8") == "neural learning"


def test_fingerprint_mode_uses_fresh_session(tmp_path):
    value = join_group([_block(0, "a", "A"), _block(1, "b", "B")])
    store, ws = _sorted_group(tmp_path, value)
    sessions = []

    def new_session():
        sessions.append(FakeSession())
        return sessions[-1]

    ClusterLabeler(SemanticFingerprint(new_session), store, ws, FakeCategorizer()).label_clusters()

    assert len(sessions) == 1 and len(sessions[0].docs) == 2
    assert list(store.read_all(ws.named_clusters / "kmeans")) == [("fp-2", value)]
    assert (ws.topmodel / "documents" / "kmeans" / "docs0" / "labelCortical").exists()


def test_block_without_author_marker_aborts(tmp_path):
    store, ws = _sorted_group(tmp_path, keyword_value(0, "a") + " Title: A")
    with pytest.raises(FieldExtractionError):
        ClusterLabeler(TopicModel(FakeTopics()), store, ws, FakeCategorizer()).label_clusters()


def test_labeler_failure_becomes_engine_error(tmp_path):
    class Broken:
        def label(self, documents):
            raise RuntimeError("model exploded")

    store, ws = _sorted_group(tmp_path, _block(0, "a", "A"))
    with pytest.raises(ExternalEngineError) as exc:
        ClusterLabeler(TopicModel(Broken()), store, ws, FakeCategorizer()).label_clusters()
    assert exc.value.operation == "label"
