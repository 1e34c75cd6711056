import pytest
from pydantic import ValidationError

from pgstore.query import (
    Compare,
    Equals,
    In,
    Query,
    ReadOptions,
    ResultFormat,
    RowMode,
    build_delete,
    build_insert,
    build_select,
    build_update,
    normalize_criteria,
    to_condition,
)


def test_insert_numbers_placeholders_in_field_order():
    query = build_insert("users", {"name": "a", "email": "b"})

    assert query.text == "INSERT INTO users (name,email) VALUES ($1,$2)"
    assert query.values == ["a", "b"]
    assert query.row_mode == RowMode.DICT


def test_insert_many_fields():
    fields = {f"c{i}": i for i in range(12)}

    query = build_insert("t", fields)

    expected = ",".join(f"${i}" for i in range(1, 13))
    assert query.text == f"INSERT INTO t ({','.join(fields)}) VALUES ({expected})"
    assert query.values == list(range(12))


def test_insert_returning_is_one_line():
    query = build_insert("users", {"name": "a"}, returning="id,\n    created_at")

    assert query.text == "INSERT INTO users (name) VALUES ($1) RETURNING id, created_at"
    assert "\n" not in query.text


def test_insert_requires_fields():
    with pytest.raises(ValueError):
        build_insert("users", {})


def test_select_defaults_to_star():
    query = build_select("users")

    assert query.text == "SELECT * FROM users"
    assert query.values == []


def test_select_single_field_string():
    query = build_select("users", "id")

    assert query.text == "SELECT id FROM users"


def test_select_in_with_order_by():
    query = build_select("users", None, {"id": [1, 2, 3]}, {"orderBy": ["id"]})

    assert query.text == "SELECT * FROM users WHERE id IN ($1,$2,$3) ORDER BY id ASC"
    assert query.values == [1, 2, 3]


def test_select_mixed_criteria_keep_map_order():
    criteria = {
        "status": "active",
        "id": [7, 8],
        "age": {"op": ">=", "val": 21},
        "team": "red",
    }

    query = build_select("users", ["id", "name"], criteria)

    assert query.text == (
        "SELECT id,name FROM users WHERE status=$1 AND id IN ($2,$3) "
        "AND age>=$4 AND team=$5"
    )
    assert query.values == ["active", 7, 8, 21, "red"]


def test_select_distinct_group_and_combined_order():
    options = {
        "distinct": True,
        "groupBy": ["team", "role"],
        "orderBy": ["team", "role"],
        "orderByDesc": ["score"],
    }

    query = build_select("users", ["team", "role"], None, options)

    assert query.text == (
        "SELECT DISTINCT team,role FROM users GROUP BY team,role "
        "ORDER BY team,role ASC, score DESC"
    )


def test_select_order_by_desc_only():
    query = build_select("users", options={"orderByDesc": ["id"]})

    assert query.text == "SELECT * FROM users ORDER BY id DESC"


@pytest.mark.parametrize("fmt,row_mode", [
    ("json", RowMode.DICT),
    ("array", RowMode.ARRAY),
    ("array-no-header", RowMode.ARRAY),
])
def test_select_row_mode_follows_format(fmt, row_mode):
    assert build_select("users", options={"format": fmt}).row_mode == row_mode


def test_update_placeholders_continue_into_where():
    query = build_update("users", {"email": "x"}, {"id": 5})

    assert query.text == "UPDATE users SET email=$1 WHERE id=$2"
    assert query.values == ["x", 5]


def test_update_two_fields_one_criterion():
    query = build_update("users", {"name": "n", "email": "e"}, {"id": 9})

    assert query.text == "UPDATE users SET name=$1,email=$2 WHERE id=$3"
    assert query.values == ["n", "e", 9]


def test_update_without_criteria():
    query = build_update("users", {"active": False})

    assert query.text == "UPDATE users SET active=$1"
    assert query.values == [False]


def test_update_binds_list_as_single_value():
    query = build_update("docs", {"title": "t"}, {"tags": ["a", "b"]})

    assert query.text == "UPDATE docs SET title=$1 WHERE tags=$2"
    assert query.values == ["t", ["a", "b"]]


def test_update_rejects_non_equality_conditions():
    with pytest.raises(ValueError):
        build_update("users", {"name": "n"}, {"id": In([1, 2])})
    with pytest.raises(ValueError):
        build_update("users", {"name": "n"}, {"age": Compare(">", 3)})


def test_delete_with_and_without_criteria():
    assert build_delete("users").text == "DELETE FROM users"

    query = build_delete("users", {"id": 1, "tenant": Equals("acme")})
    assert query.text == "DELETE FROM users WHERE id=$1 AND tenant=$2"
    assert query.values == [1, "acme"]


def test_delete_rejects_in_condition():
    with pytest.raises(ValueError):
        build_delete("users", {"id": In([1])})


def test_to_condition_dispatch():
    assert to_condition(5) == Equals(5)
    assert to_condition("x") == Equals("x")
    assert to_condition(None) == Equals(None)
    assert to_condition([1, 2]) == In((1, 2))
    assert to_condition((3,)) == In((3,))
    assert to_condition({"op": "<", "val": 4}) == Compare("<", 4)
    assert to_condition({"operator": "<>", "value": 0}) == Compare("<>", 0)
    assert to_condition(Compare("=", 1)) == Compare("=", 1)


def test_to_condition_rejects_unknown_object():
    with pytest.raises(ValueError):
        to_condition({"foo": 1})


def test_in_requires_values():
    with pytest.raises(ValueError):
        In([])
    with pytest.raises(ValueError):
        build_select("users", criteria={"id": []})


def test_compare_requires_operator():
    with pytest.raises(ValueError):
        Compare("", 1)


def test_normalize_criteria_empty():
    assert normalize_criteria(None) == {}
    assert normalize_criteria({}) == {}


def test_read_options_aliases_and_names():
    by_alias = ReadOptions.coerce({"orderBy": "id", "groupBy": None, "format": "array"})
    by_name = ReadOptions(order_by=["id"], format=ResultFormat.ARRAY)

    assert by_alias == by_name
    assert by_alias.group_by == []
    assert ReadOptions.coerce(None) == ReadOptions()


def test_read_options_rejects_unknown_format():
    with pytest.raises(ValidationError):
        ReadOptions.coerce({"format": "csv"})


def test_query_coerce():
    assert Query.coerce("SELECT 1") == Query(text="SELECT 1")
    raw = Query.coerce({"text": "SELECT $1", "values": [1], "rowMode": "array"})
    assert raw.row_mode == RowMode.ARRAY
    assert raw.values == [1]
