"""Client for a semantic-fingerprint keywords service.

The service exposes ``POST {endpoint}/text/keywords?retina_name=...`` taking
plain text and answering with a JSON list of keywords. A session collects
keywords over the documents of one cluster and names the cluster after the
most frequent ones.
"""

from __future__ import annotations

import os
import typing as t
from collections import Counter

import requests

from kodar.config import SemanticFingerprintConfig
from kodar.utils import get_logger

logger = get_logger(__name__)


class FingerprintEngine(t.Protocol):
    def add_labels(self, document: str) -> None: ...

    def get_label(self) -> str: ...


class FingerprintLabeler:
    def __init__(self, cfg: SemanticFingerprintConfig, *, http: t.Optional[requests.Session] = None):
        self.cfg = cfg
        self.http = http or requests.Session()
        self._counts: Counter = Counter()
        self._order: t.Dict[str, int] = {}

    def _headers(self) -> t.Dict[str, str]:
        headers = {"Content-Type": "text/plain; charset=utf-8", "Accept": "application/json"}
        key = os.getenv(self.cfg.api_key_env)
        if key:
            headers["api-key"] = key
        return headers

    def keywords(self, text: str) -> t.List[str]:
        r = self.http.post(
            self.cfg.endpoint.rstrip("/") + "/text/keywords",
            params={"retina_name": self.cfg.retina},
            data=text.encode("utf-8"),
            headers=self._headers(),
            timeout=self.cfg.timeout,
        )
        r.raise_for_status()
        body = r.json()
        if not isinstance(body, list):
            raise ValueError(f"unexpected keywords payload: {type(body).__name__}")
        return [str(k) for k in body]

    def add_labels(self, document: str) -> None:
        for kw in self.keywords(document):
            self._order.setdefault(kw, len(self._order))
            self._counts[kw] += 1

    def get_label(self) -> str:
        if not self._counts:
            raise ValueError("no keywords collected for this cluster")
        ranked = sorted(self._counts, key=lambda kw: (-self._counts[kw], self._order[kw]))
        return " ".join(ranked[: self.cfg.max_keywords])


class FingerprintSessions:
    """One HTTP session per run, one labeler per cluster."""

    def __init__(self, cfg: SemanticFingerprintConfig, *, http: t.Optional[requests.Session] = None):
        self.cfg = cfg
        self.http = http or requests.Session()

    def __call__(self) -> FingerprintLabeler:
        return FingerprintLabeler(self.cfg, http=self.http)

    def close(self) -> None:
        self.http.close()


def fingerprint_factory(cfg: SemanticFingerprintConfig) -> FingerprintSessions:
    return FingerprintSessions(cfg)
