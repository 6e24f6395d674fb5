import numpy as np
import pytest

from recallbench.commands import (
    CreateIndex,
    CreateTable,
    InsertRow,
    SimilarityQuery,
    create_index,
    create_table,
    format_vector,
    insert_row,
    parse_command,
    similarity_query,
)


def test_format_vector_uses_six_decimals():
    assert format_vector([1, 0.5, -2.25]) == "[1.000000, 0.500000, -2.250000]"


def test_command_text():
    assert create_table("t1", "v1", 128, "v2") == "CREATE TABLE t1(v1 VECTOR(128), v2 integer);"
    assert (
        create_index("t1v1hnsw", "t1", "hnsw", "v1", "vector_l2_ops", {"m": 16, "ef_construction": 64, "ef_search": 100})
        == "CREATE INDEX t1v1hnsw ON t1 USING hnsw (v1 vector_l2_ops) WITH (m = 16, ef_construction = 64, ef_search = 100);"
    )
    assert create_index("i", "t1", "ivfflat", "v1", "vector_ip_ops") == "CREATE INDEX i ON t1 USING ivfflat (v1 vector_ip_ops);"
    assert insert_row("t1", [1.0, 0.0], 3) == "INSERT INTO t1 VALUES (ARRAY [1.000000, 0.000000] , 3);"
    assert (
        similarity_query("t1", "v2", "v1", [0.0, 1.0], "<->", 100)
        == "SELECT v2, v1 FROM t1 ORDER BY ARRAY [0.000000, 1.000000] <-> v1 LIMIT 100;"
    )


def test_parse_command_understands_generated_commands():
    table = parse_command(create_table("t1", "v1", 4, "v2"))
    assert table == CreateTable(table="t1", vector_column="v1", dimension=4, id_column="v2")

    index = parse_command(create_index("idx", "t1", "HNSW", "v1", "vector_cosine_ops", {"m": 8, "ef_search": 40}))
    assert isinstance(index, CreateIndex)
    assert index.method == "hnsw"
    assert index.params == {"m": "8", "ef_search": "40"}
    assert index.int_param("m", 16) == 8
    assert index.int_param("ef_construction", 64) == 64

    insert = parse_command(insert_row("t1", [0.5, -1.0], 12))
    assert isinstance(insert, InsertRow)
    assert insert.row_id == 12
    np.testing.assert_array_equal(insert.vector, np.array([0.5, -1.0], dtype=np.float32))

    query = parse_command(similarity_query("t1", "v2", "v1", [1.0, 2.0], "<=>", 10))
    assert isinstance(query, SimilarityQuery)
    assert query.operator == "<=>"
    assert query.limit == 10
    assert (query.id_column, query.vector_column, query.table) == ("v2", "v1", "t1")


@pytest.mark.parametrize(
    "text",
    [
        "DROP TABLE t1;",
        "INSERT INTO t1 VALUES (ARRAY [] , 1);",
        "CREATE INDEX i ON t1 USING hnsw (v1 vector_l2_ops) WITH (m);",
    ],
)
def test_parse_command_rejects_other_input(text):
    with pytest.raises(ValueError):
        parse_command(text)


def test_format_vector_rounds_tiny_components_to_zero():
    assert format_vector([4e-7, 6e-7, -1e-7]) == "[0.000000, 0.000001, -0.000000]"
