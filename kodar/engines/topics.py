from __future__ import annotations

import typing as t

import numpy as np
from sklearn.decomposition import LatentDirichletAllocation
from sklearn.feature_extraction.text import CountVectorizer

from kodar.config import TopicModelConfig
from kodar.utils import get_logger

logger = get_logger(__name__)

# Keeps one-letter tokens, which the default pattern drops.
ANY_WORD_PATTERN = r"(?u)\b\w+\b"


class TopicLabeler(t.Protocol):
    def label(self, documents: t.Sequence[str]) -> str: ...


class TopicModelLabeler:
    """Label a document group with the top terms of its dominant LDA topic.

    Groups made only of stop words are counted again without the stop list;
    if even that leaves no terms the label is the first distinct tokens.
    """

    def __init__(self, cfg: TopicModelConfig, *, random_state: int = 42):
        self.cfg = cfg
        self.random_state = random_state

    def _count(self, docs: t.List[str]):
        for kwargs in ({"stop_words": self.cfg.stop_words}, {"stop_words": None, "token_pattern": ANY_WORD_PATTERN}):
            cv = CountVectorizer(**kwargs)
            try:
                return cv, cv.fit_transform(docs)
            except ValueError as e:
                logger.warning("topics.count: %s (stop_words=%s)", e, kwargs["stop_words"])
        return None, None

    def _token_label(self, docs: t.List[str]) -> str:
        tokens: t.List[str] = []
        for d in docs:
            for tok in d.lower().split():
                if tok not in tokens:
                    tokens.append(tok)
        return " ".join(tokens[: self.cfg.num_terms])

    def label(self, documents: t.Sequence[str]) -> str:
        docs = [d for d in documents if d and d.strip()]
        if not docs:
            raise ValueError("no documents to label")

        cv, X = self._count(docs)
        if cv is None:
            return self._token_label(docs)
        lda = LatentDirichletAllocation(
            n_components=self.cfg.num_topics,
            max_iter=self.cfg.max_iterations,
            learning_method="batch",
            random_state=self.random_state,
        )
        doc_topic = lda.fit_transform(X)
        topic = int(doc_topic.sum(axis=0).argmax())
        terms = cv.get_feature_names_out()
        order = np.argsort(-lda.components_[topic], kind="stable")[: self.cfg.num_terms]
        label = " ".join(str(terms[i]) for i in order)
        logger.debug("topics.label: docs=%d vocab=%d topic=%d label=%s", len(docs), len(terms), topic, label)
        return label
