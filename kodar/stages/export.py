from __future__ import annotations

import csv
import json
import typing as t
from pathlib import Path
from urllib.parse import quote

from rdflib import Graph, Literal, Namespace, URIRef
from rdflib.namespace import DCTERMS, FOAF, RDF, RDFS, SKOS

from kodar.config import ExportConfig, Workspace
from kodar.errors import StorageError
from kodar.records import extract_fields, split_group
from kodar.store import RecordStore
from kodar.utils import get_logger, normalize_http_url

logger = get_logger(__name__)

COLUMNS = ("label", "id", "name", "authorUri", "publicationUri", "title", "keywords")
FORMATS = (("csv", "final.csv"), ("json", "final.json"), ("rdf", "final.nt"))


class ResultExporter:
    """Render one named-cluster record file as CSV, JSON or N-Triples."""

    def __init__(self, store: RecordStore, cfg: ExportConfig):
        self.store = store
        self.cfg = cfg
        base = cfg.base_uri if cfg.base_uri.endswith(("/", "#")) else cfg.base_uri + "/"
        self.ns = Namespace(base)

    def clusters(self, source: Path) -> t.Iterator[t.Tuple[str, t.List[t.Dict[str, t.Any]]]]:
        for label, value in self.store.read_all(source):
            docs = []
            for block in split_group(value):
                f = extract_fields(block)
                docs.append({
                    "id": f.row_id,
                    "name": f.author,
                    "authorUri": f.author_uri,
                    "publicationUri": f.publication_uri,
                    "title": f.title,
                    "keywords": f.keyword_list(),
                })
            yield str(label), docs

    def to_csv(self, source: Path, dest: Path) -> int:
        n = 0
        try:
            with open(dest, "w", encoding="utf-8", newline="") as f:
                w = csv.writer(f, delimiter=self.cfg.delimiter)
                w.writerow(COLUMNS)
                for label, docs in self.clusters(source):
                    for d in docs:
                        w.writerow((label, d["id"], d["name"], d["authorUri"], d["publicationUri"],
                                    d["title"], ", ".join(d["keywords"])))
                        n += 1
        except OSError as e:
            raise StorageError(f"cannot write {dest}: {e}") from e
        return n

    def to_json(self, source: Path, dest: Path) -> int:
        payload = [{"label": label, "documents": docs} for label, docs in self.clusters(source)]
        try:
            with open(dest, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StorageError(f"cannot write {dest}: {e}") from e
        return sum(len(c["documents"]) for c in payload)

    def _node(self, uri: str, *fallback: str) -> URIRef:
        norm = normalize_http_url(uri)
        if norm:
            return URIRef(norm)
        return self.ns["/".join(quote(str(p), safe="") for p in fallback)]

    def to_rdf(self, source: Path, dest: Path) -> int:
        g = Graph()
        g.bind("dcterms", DCTERMS)
        g.bind("foaf", FOAF)
        g.bind("skos", SKOS)
        algorithm = source.name
        n = 0
        for i, (label, docs) in enumerate(self.clusters(source)):
            cluster = self.ns[f"cluster/{quote(algorithm, safe='')}/{i}"]
            g.add((cluster, RDF.type, SKOS.Concept))
            g.add((cluster, RDFS.label, Literal(label)))
            for d in docs:
                pub = self._node(d["publicationUri"], "publication", algorithm, d["id"])
                author = self._node(d["authorUri"], "author", d["id"])
                g.add((pub, DCTERMS.isPartOf, cluster))
                g.add((pub, DCTERMS.title, Literal(d["title"])))
                g.add((pub, DCTERMS.creator, author))
                g.add((author, RDF.type, FOAF.Person))
                g.add((author, FOAF.name, Literal(d["name"])))
                for kw in d["keywords"]:
                    g.add((pub, DCTERMS.subject, Literal(kw)))
                n += 1
        try:
            g.serialize(destination=str(dest), format="nt", encoding="utf-8")
        except OSError as e:
            raise StorageError(f"cannot write {dest}: {e}") from e
        return n


def export_results(store: RecordStore, workspace: Workspace, exporter: ResultExporter) -> t.List[Path]:
    written: t.List[Path] = []
    if not store.exists(workspace.named_clusters):
        logger.warning("export: no named clusters under %s", workspace.named_clusters)
        return written
    for name in sorted(store.list_entries(workspace.named_clusters)):
        source = workspace.named_clusters / name
        out_dir = workspace.result / name
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create {out_dir}: {e}") from e
        for fmt, filename in FORMATS:
            dest = out_dir / filename
            rows = getattr(exporter, f"to_{fmt}")(source, dest)
            written.append(dest)
            logger.info("export.%s: source=%s rows=%d dest=%s", fmt, name, rows, dest)
    return written
