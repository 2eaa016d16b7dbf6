import pytest

from audionotes.core.exceptions import JsonExtractionError
from audionotes.services.llm.json_utils import extract_json, extract_json_array, extract_json_object


def test_plain_object():
    assert extract_json_object('{"title": "A"}') == {"title": "A"}


def test_fenced_object_with_language_tag():
    text = '```json\n{"title": "A", "content": "# H\\n- x"}\n```'
    assert extract_json_object(text) == {"title": "A", "content": "# H\n- x"}


def test_object_surrounded_by_prose():
    text = 'Sure! Here is the note:\n{"title": "A", "description": "B"}\nLet me know if you need more.'
    assert extract_json_object(text)["description"] == "B"


def test_fenced_array_without_tag():
    text = '```\n[{"front": "Q", "back": "A"}]\n```'
    assert extract_json_array(text) == [{"front": "Q", "back": "A"}]


def test_expect_dict_skips_array_and_finds_object():
    text = 'Items: [1, 2] and result {"ok": true}'
    assert extract_json(text, expect=dict) == {"ok": True}


@pytest.mark.parametrize("text", ["", "   ", "no json here", "```json\n{broken\n```"])
def test_unrecoverable_text_raises(text):
    with pytest.raises(JsonExtractionError):
        extract_json_object(text)
