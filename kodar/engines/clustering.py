from __future__ import annotations

import json
import math
import typing as t
import warnings
from pathlib import Path

import numpy as np
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity
from sklearn.preprocessing import normalize

from kodar.config import FuzzyKMeansConfig, KMeansConfig, VectorizeConfig
from kodar.store import RecordStore
from kodar.utils import get_logger

logger = get_logger(__name__)

VECTORS_DIR = "tfidf-vectors"
DICTIONARY_FILE = "dictionary.file-0"
POINTS_DIR = "clusteredPoints"
PART = "part-r-00000"


class BatchClusteringEngine(t.Protocol):
    def vectorize(self, input_path: Path, output_path: Path, params: VectorizeConfig) -> Path: ...

    def hard_cluster(self, vectors_path: Path, output_path: Path, k: int, params: KMeansConfig) -> Path: ...

    def fuzzy_cluster(self, vectors_path: Path, seed_path: Path, output_path: Path,
                      params: FuzzyKMeansConfig) -> Path: ...

    def evaluate_density(self, hard_partition: Path, fuzzy_partition: Path) -> t.Dict[str, float]: ...


def _cosine_distance(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.clip(1.0 - cosine_similarity(a, b), 0.0, 2.0)


def inter_cluster_density(centers: np.ndarray) -> float:
    """Normalised mean pairwise centroid distance; NaN below two clusters."""
    if centers.shape[0] < 2:
        return float("nan")
    d = _cosine_distance(centers, centers)
    iu = np.triu_indices(centers.shape[0], k=1)
    pairs = d[iu]
    lo, hi = float(pairs.min()), float(pairs.max())
    if math.isclose(hi, lo):
        return float("nan")
    return (float(pairs.mean()) - lo) / (hi - lo)


def fuzzy_memberships(dist: np.ndarray, m: float) -> np.ndarray:
    """Fuzzy k-means membership matrix for a point-by-center distance matrix."""
    n, k = dist.shape
    u = np.zeros((n, k), dtype=float)
    exact = dist <= 1e-12
    for i in range(n):
        if exact[i].any():
            u[i, exact[i]] = 1.0 / exact[i].sum()
            continue
        ratio = (dist[i][:, None] / dist[i][None, :]) ** (2.0 / (m - 1.0))
        u[i] = 1.0 / ratio.sum(axis=1)
    return u


class LocalClusteringEngine:
    """In-process engine writing the batch engine's on-disk layout.

    ``vectorize`` leaves ``tfidf-vectors/`` and a dictionary; each clustering
    run leaves ``clusters-0``, ``clusters-<n>-final`` and ``clusteredPoints``
    under its output directory.
    """

    def __init__(self, store: RecordStore, *, random_state: int = 42):
        self.store = store
        self.random_state = random_state

    # ---------- Vectors ----------

    def vectorize(self, input_path: Path, output_path: Path, params: VectorizeConfig) -> Path:
        names: t.List[str] = []
        texts: t.List[str] = []
        for key, value in self.store.read_all(input_path):
            names.append(str(key))
            texts.append(value)

        vec = TfidfVectorizer(
            min_df=params.min_doc_freq,
            max_df=params.max_doc_freq_percent / 100.0,
            ngram_range=(1, params.ngram_size),
            use_idf=params.weighting == "tfidf",
            norm="l2" if params.normalize else None,
        )
        self.store.delete_path(output_path)
        vectors_path = output_path / VECTORS_DIR
        try:
            X = vec.fit_transform(texts).tocsr()
            vocab = vec.vocabulary_
        except ValueError as e:
            # Pruning can leave nothing on tiny corpora; the batch engine emits empty vectors then.
            logger.warning("engine.vectorize: no terms survive pruning docs=%d (%s)", len(texts), e)
            X = None
            vocab = {}

        def records():
            for i, name in enumerate(names):
                if X is None:
                    yield name, json.dumps({"indices": [], "values": []})
                    continue
                lo, hi = X.indptr[i], X.indptr[i + 1]
                yield name, json.dumps({
                    "indices": [int(j) for j in X.indices[lo:hi]],
                    "values": [float(v) for v in X.data[lo:hi]],
                })

        n = self.store.write_all(vectors_path / PART, records())
        self.store.write_all(output_path / DICTIONARY_FILE,
                             ((term, str(idx)) for term, idx in sorted(vocab.items(), key=lambda kv: kv[1])))
        self.store.mark_success(vectors_path)
        logger.info("engine.vectorize: docs=%d terms=%d", n, len(vocab))
        return vectors_path

    def load_vectors(self, vectors_path: Path) -> t.Tuple[t.List[str], np.ndarray]:
        names: t.List[str] = []
        rows: t.List[dict] = []
        dim = 0
        for key, value in self.store.read_all(vectors_path):
            v = json.loads(value)
            names.append(str(key))
            rows.append(v)
            if v["indices"]:
                dim = max(dim, max(v["indices"]) + 1)
        X = np.zeros((len(rows), max(dim, 1)), dtype=float)
        for i, v in enumerate(rows):
            X[i, v["indices"]] = v["values"]
        return names, X

    # ---------- Partitions ----------

    def _write_partition(self, path: Path, centers: np.ndarray, counts: t.Sequence[int]) -> None:
        self.store.write_all(path / PART, (
            (cid, json.dumps({"center": [float(x) for x in c], "num_points": int(counts[cid])}))
            for cid, c in enumerate(centers)
        ))
        self.store.mark_success(path)

    def _write_points(self, output_path: Path, names: t.List[str], labels: np.ndarray) -> None:
        points = output_path / POINTS_DIR
        self.store.write_all(points / "part-m-0", ((int(lb), name) for name, lb in zip(names, labels)))
        self.store.mark_success(points)

    def load_centers(self, partition: Path) -> np.ndarray:
        centers = [json.loads(v)["center"] for _, v in sorted(self.store.read_all(partition), key=lambda kv: kv[0])]
        return np.array(centers, dtype=float)

    # ---------- Clustering ----------

    def hard_cluster(self, vectors_path: Path, output_path: Path, k: int, params: KMeansConfig) -> Path:
        names, X = self.load_vectors(vectors_path)
        if not names:
            raise ValueError("no vectors to cluster")
        if k > len(names):
            logger.warning("engine.kmeans: k=%d exceeds points=%d, clamping", k, len(names))
            k = len(names)

        Xn = normalize(X)
        rng = np.random.default_rng(self.random_state)
        seeds = Xn[rng.choice(len(names), size=k, replace=False)]

        self.store.delete_path(output_path)
        self._write_partition(output_path / "clusters-0", seeds, [0] * k)

        km = KMeans(n_clusters=k, init=seeds, n_init=1, max_iter=params.max_iterations,
                    tol=params.convergence_delta, random_state=self.random_state)
        with warnings.catch_warnings():
            # Duplicate points (empty vectors) leave fewer distinct clusters than k.
            warnings.simplefilter("ignore", ConvergenceWarning)
            labels = km.fit_predict(Xn)
        counts = np.bincount(labels, minlength=k)
        final = output_path / f"clusters-{max(1, int(km.n_iter_))}-final"
        self._write_partition(final, km.cluster_centers_, counts)
        self._write_points(output_path, names, labels)
        logger.info("engine.kmeans: k=%d points=%d iterations=%d", k, len(names), int(km.n_iter_))
        return output_path

    def fuzzy_cluster(self, vectors_path: Path, seed_path: Path, output_path: Path,
                      params: FuzzyKMeansConfig) -> Path:
        names, X = self.load_vectors(vectors_path)
        if not names:
            raise ValueError("no vectors to cluster")
        Xn = normalize(X)
        centers = self.load_centers(seed_path)
        if centers.shape[1] != Xn.shape[1]:
            raise ValueError(f"seed dimension {centers.shape[1]} != vector dimension {Xn.shape[1]}")

        self.store.delete_path(output_path)
        self._write_partition(output_path / "clusters-0", centers, [0] * centers.shape[0])

        m = params.fuzziness
        u = fuzzy_memberships(_cosine_distance(Xn, centers), m)
        iterations = 0
        for iterations in range(1, params.max_iterations + 1):
            w = u ** m
            denom = w.sum(axis=0)[:, None]
            new_centers = np.divide(w.T @ Xn, denom, out=np.zeros_like(centers), where=denom > 0)
            shift = np.diag(_cosine_distance(centers, new_centers)).copy()
            shift[np.all(np.isclose(centers, new_centers), axis=1)] = 0.0
            centers = new_centers
            u = fuzzy_memberships(_cosine_distance(Xn, centers), m)
            if float(shift.max()) <= params.convergence_delta:
                break

        # most likely cluster only; the joins expect one assignment per point
        labels = u.argmax(axis=1)
        counts = np.bincount(labels, minlength=centers.shape[0])
        self._write_partition(output_path / f"clusters-{iterations}-final", centers, counts)
        self._write_points(output_path, names, labels)
        logger.info("engine.fkmeans: k=%d points=%d iterations=%d m=%.2f", centers.shape[0], len(names), iterations, m)
        return output_path

    # ---------- Evaluation ----------

    def evaluate_density(self, hard_partition: Path, fuzzy_partition: Path) -> t.Dict[str, float]:
        return {
            "hard": inter_cluster_density(self.load_centers(hard_partition)),
            "fuzzy": inter_cluster_density(self.load_centers(fuzzy_partition)),
        }
