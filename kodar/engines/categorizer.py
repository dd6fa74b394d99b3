from __future__ import annotations

import typing as t

import nltk
from nltk.corpus import wordnet as _wordnet

from kodar.utils import get_logger

logger = get_logger(__name__)

WORDNET_RESOURCE = ("wordnet", "corpora/wordnet")


def ensure_wordnet() -> None:
    name, path = WORDNET_RESOURCE
    try:
        nltk.data.find(path)
    except LookupError:
        logger.info("categorizer: downloading NLTK resource %s", name)
        if not nltk.download(name, quiet=True):
            logger.warning("categorizer: NLTK resource %s could not be downloaded", name)


class Categorizer(t.Protocol):
    def categorize(self, text: str) -> str: ...


class WordNetCategorizer:
    """Annotate comma-separated keywords with WordNet noun categories.

    A keyword maps to the lexicographer file of its first noun sense
    (``noun.cognition`` -> ``cognition``); multi-word keywords fall back to
    their head word. Without an injected ``wordnet`` the NLTK corpus is
    fetched on first use if it is missing.
    """

    def __init__(self, *, max_categories: int = 5, wordnet=None):
        self.max_categories = max_categories
        if wordnet is None:
            ensure_wordnet()
            wordnet = _wordnet
        self.wordnet = wordnet

    def _category(self, keyword: str) -> t.Optional[str]:
        words = keyword.lower().split()
        if not words:
            return None
        for lemma in ("_".join(words), words[-1]):
            synsets = self.wordnet.synsets(lemma, pos=self.wordnet.NOUN)
            if synsets:
                return synsets[0].lexname().split(".", 1)[-1]
        return None

    def categorize(self, text: str) -> str:
        cats: t.List[str] = []
        for kw in (text or "").split(","):
            cat = self._category(kw)
            if cat and cat not in cats:
                cats.append(cat)
            if len(cats) >= self.max_categories:
                break
        return " ".join(cats)


class NullCategorizer:
    def categorize(self, text: str) -> str:
        return ""
