import pytest

ROWS = [
    ("Ana Torres", "http://example.org/author/1", "http://example.org/pub/1", "Deep nets for text", "neural networks, learning"),
    ("Bob Ruiz", "http://example.org/author/2", "http://example.org/pub/2", "Mining citation graphs", "graph mining, learning"),
]


def write_dataset(path, rows=ROWS):
    lines = ["name,authorUri,publicationUri,title,keywords"]
    for name, author_uri, pub_uri, title, keywords in rows:
        lines.append(f'{name},{author_uri},{pub_uri},{title},"{keywords}"')
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def dataset(tmp_path):
    return write_dataset(tmp_path / "dataset.csv")
