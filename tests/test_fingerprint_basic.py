import pytest

from kodar.config import SemanticFingerprintConfig
from kodar.engines.fingerprint import FingerprintLabeler, FingerprintSessions


class FakeResponse:
    def __init__(self, body):
        self.body = body

    def raise_for_status(self):
        return None

    def json(self):
        return self.body


class FakeHttp:
    def __init__(self, answers):
        self.answers = list(answers)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return FakeResponse(self.answers.pop(0))


def test_label_is_most_frequent_keywords(monkeypatch):
    monkeypatch.setenv("CORTICAL_API_KEY", "secret")
    http = FakeHttp([["graphs", "mining"], ["learning", "graphs"], ["learning", "graphs"]])
    fp = FingerprintLabeler(SemanticFingerprintConfig(endpoint="http://fp.test/rest/", max_keywords=2), http=http)
    for doc in ("a", "b", "c"):
        fp.add_labels(doc)
    assert fp.get_label() == "graphs learning"
    url, kwargs = http.calls[0]
    assert url == "http://fp.test/rest/text/keywords"
    assert kwargs["headers"]["api-key"] == "secret"
    assert kwargs["params"] == {"retina_name": "en_associative"}


def test_empty_session_has_no_label():
    fp = FingerprintLabeler(SemanticFingerprintConfig(), http=FakeHttp([]))
    with pytest.raises(ValueError):
        fp.get_label()


class ClosingHttp(FakeHttp):
    def __init__(self, answers):
        super().__init__(answers)
        self.closed = False

    def close(self):
        self.closed = True


def test_sessions_share_http_and_close_it():
    http = ClosingHttp([])
    sessions = FingerprintSessions(SemanticFingerprintConfig(), http=http)
    first, second = sessions(), sessions()
    assert first is not second
    assert first.http is http and second.http is http
    sessions.close()
    assert http.closed
