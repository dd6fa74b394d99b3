import nltk

from kodar.engines import categorizer as categorizer_mod
from kodar.engines.categorizer import NullCategorizer, WordNetCategorizer, ensure_wordnet


class FakeSynset:
    def __init__(self, lexname):
        self._lexname = lexname

    def lexname(self):
        return self._lexname


class FakeWordNet:
    NOUN = "n"

    def __init__(self, table):
        self.table = table
        self.calls = []

    def synsets(self, lemma, pos=None):
        self.calls.append((lemma, pos))
        return [FakeSynset(x) for x in self.table.get(lemma, [])]


TABLE = {
    "networks": ["noun.group"],
    "learning": ["noun.act", "noun.cognition"],
    "graph": ["noun.communication"],
    "cell": ["noun.object"],
}


def test_multi_word_keyword_falls_back_to_head_word():
    wn = FakeWordNet(TABLE)
    cat = WordNetCategorizer(wordnet=wn)
    assert cat.categorize("neural networks") == "group"
    assert wn.calls == [("neural_networks", "n"), ("networks", "n")]


def test_categories_are_deduplicated_and_capped():
    text = "neural networks, learning , machine learning, unknownword, graph, cell "
    assert WordNetCategorizer(wordnet=FakeWordNet(TABLE)).categorize(text) == "group act communication object"
    assert WordNetCategorizer(max_categories=2, wordnet=FakeWordNet(TABLE)).categorize(text) == "group act"


def test_empty_text_and_null_categorizer():
    assert WordNetCategorizer(wordnet=FakeWordNet(TABLE)).categorize("") == ""
    assert NullCategorizer().categorize("graph") == ""


def test_missing_corpus_is_downloaded(monkeypatch):
    downloads = []

    def missing(path):
        raise LookupError(path)

    monkeypatch.setattr(nltk.data, "find", missing)
    monkeypatch.setattr(nltk, "download", lambda name, quiet=False: downloads.append((name, quiet)) or True)
    ensure_wordnet()
    assert downloads == [("wordnet", True)]


def test_present_corpus_is_not_downloaded(monkeypatch):
    downloads = []
    monkeypatch.setattr(nltk.data, "find", lambda path: path)
    monkeypatch.setattr(nltk, "download", lambda name, quiet=False: downloads.append(name))
    ensure_wordnet()
    assert downloads == []


def test_default_wordnet_is_ensured_only_when_not_injected(monkeypatch):
    calls = []
    monkeypatch.setattr(categorizer_mod, "ensure_wordnet", lambda: calls.append(1))
    WordNetCategorizer(wordnet=FakeWordNet(TABLE))
    assert calls == []
    WordNetCategorizer()
    assert calls == [1]
