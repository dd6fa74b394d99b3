import pytest

from kodar.config import TopicModelConfig
from kodar.engines.topics import TopicModelLabeler


def test_label_has_top_terms():
    label = TopicModelLabeler(TopicModelConfig()).label([
        "Deep nets\nneural networks, learning \n",
        "Graphs\ngraph mining, learning \n",
    ])
    assert len(label.split()) == 3


def test_stop_word_only_group_is_counted_without_stop_list():
    label = TopicModelLabeler(TopicModelConfig()).label(["The\nit \n", "Of\na \n"])
    words = label.split()
    assert len(words) == 3
    assert set(words) <= {"the", "it", "of", "a"}


def test_group_without_word_tokens_uses_first_tokens():
    label = TopicModelLabeler(TopicModelConfig(num_terms=2)).label(["--\n, \n", "?\n"])
    assert label == "-- ,"


def test_no_documents_is_an_error():
    with pytest.raises(ValueError):
        TopicModelLabeler(TopicModelConfig()).label(["", "  "])
