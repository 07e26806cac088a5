import json

import pytest

from couchmap.db.exceptions import InvalidArgument, MalformedResult, OutOfRange, ReadOnlyViolation
from couchmap.db.models.Document import Document
from couchmap.db.models.QueryResult import QueryResult
from couchmap.db.models.ReturnMode import ReturnKind, ReturnMode


class Order(Document):
    pass


def _view_response():
    return {
        "total_rows": 3,
        "offset": 0,
        "rows": [
            {"id": "a", "key": ["pen"], "value": {"_id": "a", "item": "pen", "qty": 3}, "doc": {"_id": "a", "_rev": "1-a", "item": "pen", "qty": 3}},
            {"id": "b", "key": ["paper"], "value": {"_id": "b", "item": "paper", "qty": 1}},
            {"id": "c", "key": ["ink"], "value": {"_id": "c", "item": "ink", "qty": 7}},
        ],
    }


################ CONSTRUCTION ##################
@pytest.mark.parametrize("response", [{}, {"total_rows": 0}, [], None, {"rows": "nope"}, {"rows": {"id": "a"}}])
def test_malformed_results_are_rejected(response):
    with pytest.raises(MalformedResult):
        QueryResult(response)


def test_null_rows_is_empty():
    result = QueryResult({"rows": None})
    assert len(result) == 0
    assert list(result) == []


def test_object_mode_requires_connection():
    with pytest.raises(InvalidArgument, match="connection"):
        QueryResult(_view_response(), ReturnMode.objects())


def test_object_mode_requires_document_type():
    with pytest.raises(InvalidArgument):
        ReturnMode.objects(dict)


def test_return_mode_factories():
    assert ReturnMode.raw().kind == ReturnKind.RAW
    assert ReturnMode.text().kind == ReturnKind.TEXT
    assert ReturnMode.objects().document_type is Document
    assert ReturnMode.objects(Order).is_object()
    assert not ReturnMode.raw().is_object()


################ MATERIALIZATION ##################
def test_raw_mode_returns_values():
    result = QueryResult(_view_response())
    assert result[0] == {"_id": "a", "item": "pen", "qty": 3}
    assert result.get_at(2)["item"] == "ink"
    assert result.get_return_mode() == ReturnMode.raw()


def test_raw_values_are_copies():
    result = QueryResult(_view_response())
    result[0]["qty"] = 100
    assert result[0]["qty"] == 3


def test_text_mode_returns_serialized_values():
    result = QueryResult(_view_response(), ReturnMode.text())
    assert isinstance(result[1], str)
    assert json.loads(result[1]) == {"_id": "b", "item": "paper", "qty": 1}


def test_object_mode_returns_bound_documents_without_url(connection):
    result = QueryResult(_view_response(), ReturnMode.objects(Order), connection)
    document = result[2]
    assert isinstance(document, Order)
    assert document.get_id() == "c"
    assert document.get_field("qty") == 7
    assert document.get_connection() is connection
    assert document.get_url() is None


def test_object_mode_rejects_non_mapping_values(connection):
    result = QueryResult({"rows": [{"id": "a", "key": "a", "value": 3}]}, ReturnMode.objects(), connection)
    with pytest.raises(MalformedResult):
        result[0]


@pytest.mark.parametrize("offset", [-1, 3, 100])
def test_offsets_outside_the_result(offset):
    result = QueryResult(_view_response())
    with pytest.raises(OutOfRange):
        result.get_at(offset)
    with pytest.raises(IndexError):
        result[offset]


def test_non_integer_offsets():
    result = QueryResult(_view_response())
    with pytest.raises(TypeError):
        result["0"]
    with pytest.raises(TypeError):
        result.get_at(True)


def test_same_offset_same_mode_same_value():
    raw = QueryResult(_view_response())
    assert raw[1] == raw[1]
    text = QueryResult(_view_response(), ReturnMode.text())
    assert text[1] == text[1]


################ ROWS ##################
def test_row_accessors():
    result = QueryResult(_view_response())
    assert result.get_row(1)["id"] == "b"
    assert result.get_row(5) is None
    assert result.get_row_metadata(0) == {"id": "a", "key": ["pen"], "doc": {"_id": "a", "_rev": "1-a", "item": "pen", "qty": 3}}
    assert result.get_row_metadata(9) is None
    assert [row["id"] for row in result.get_rows()] == ["a", "b", "c"]


def test_row_accessors_default_to_cursor():
    result = QueryResult(_view_response())
    result.seek(1)
    assert result.get_row()["id"] == "b"
    assert result.get_row_metadata() == {"id": "b", "key": ["paper"]}


def test_embedded_documents(connection):
    result = QueryResult(_view_response(), ReturnMode.objects(), connection)
    embedded = result.get_embedded_document(0)
    assert isinstance(embedded, Document)
    assert embedded.get_revision() == "1-a"
    assert result.get_embedded_document(1) is None
    assert result.get_embedded_document(7) is None
    assert [doc is None for doc in result.get_embedded_documents()] == [False, True, True]


def test_embedded_document_in_raw_mode():
    result = QueryResult(_view_response())
    assert result.get_embedded_document(0) == {"_id": "a", "_rev": "1-a", "item": "pen", "qty": 3}


@pytest.mark.parametrize("mode", [ReturnMode.raw(), ReturnMode.text(), ReturnMode.objects()])
def test_null_embedded_document_is_absent(connection, mode):
    response = {"rows": [
        {"id": "a", "key": "a", "value": {"rev": "2-b"}, "doc": None},
        {"id": "b", "key": "b", "value": {"rev": "1-a"}, "doc": {"_id": "b", "_rev": "1-a", "item": "ink"}},
    ]}
    result = QueryResult(response, mode, connection)
    assert result.get_embedded_document(0) is None
    embedded = result.get_embedded_documents()
    assert embedded[0] is None
    assert embedded[1] is not None


def test_raw_values_match_document_fields_for_every_row(connection):
    raw = QueryResult(_view_response())
    objects = QueryResult(_view_response(), ReturnMode.objects(), connection)
    for offset in range(len(raw)):
        assert raw[offset] == objects[offset].to_dict(metadata=True)


################ METADATA ##################
def test_result_metadata():
    result = QueryResult(_view_response())
    assert result.total_rows == 3
    assert result.offset == 0
    assert result.update_seq is None
    assert result.get_metadata("total_rows") == 3
    assert result.get_metadata() == {"total_rows": 3, "offset": 0}


def test_private_attributes_are_not_metadata():
    result = QueryResult(_view_response())
    with pytest.raises(AttributeError):
        result._does_not_exist


################ ITERATION / CURSOR ##################
def test_iteration_visits_rows_in_order():
    result = QueryResult(_view_response())
    assert [value["item"] for value in result] == ["pen", "paper", "ink"]
    assert len(result) == 3


def test_iteration_does_not_move_the_cursor():
    result = QueryResult(_view_response())
    result.seek(2)
    list(result)
    assert result.key() == 2


def test_cursor_walk():
    result = QueryResult(_view_response())
    seen = []
    while result.has_more():
        seen.append((result.key(), result.current()["item"]))
        result.next()
    assert seen == [(0, "pen"), (1, "paper"), (2, "ink")]
    with pytest.raises(OutOfRange):
        result.current()

    result.rewind()
    assert result.key() == 0
    assert result.current()["item"] == "pen"


def test_seek_matches_indexing():
    result = QueryResult(_view_response())
    for offset in range(len(result)):
        result.seek(offset)
        assert result.current() == result[offset]


@pytest.mark.parametrize("index", [-1, 3])
def test_seek_out_of_range(index):
    result = QueryResult(_view_response())
    with pytest.raises(OutOfRange):
        result.seek(index)
    assert result.key() == 0


################ READ-ONLY ##################
def test_result_is_read_only():
    result = QueryResult(_view_response())
    with pytest.raises(ReadOnlyViolation):
        result[0] = {"item": "hacked"}
    with pytest.raises(ReadOnlyViolation):
        del result[0]
    with pytest.raises(ReadOnlyViolation):
        result.total_rows = 99
    with pytest.raises(ReadOnlyViolation):
        del result.offset
    assert result[0]["item"] == "pen"
    assert result.total_rows == 3
    assert len(result) == 3


def test_input_is_copied():
    response = _view_response()
    result = QueryResult(response)
    response["rows"][0]["value"]["item"] = "changed"
    response["total_rows"] = 0
    assert result[0]["item"] == "pen"
    assert result.total_rows == 3
