"""Tests for the DuckDB resource."""

import duckdb
import pytest

from partition_catalog.utils import query_scalar, query_to_dict_list
from partition_lifecycle.resources import DuckDBResource
from partition_lifecycle.resources.duckdb_resource import is_transient_error, quote_identifier
from partition_lifecycle.utils.exceptions import ConflictError, TransientError


def test_convert_query_parameters_in_sql_order():
    """Test that named placeholders become positional parameters in SQL order."""
    resource = DuckDBResource(database_path=":memory:")
    query, params = resource._convert_query_parameters(
        "SELECT * FROM t WHERE b = {b:String} AND a = {a:Int64}", {"a": 1, "b": "x"}
    )
    assert query == "SELECT * FROM t WHERE b = ? AND a = ?"
    assert params == ["x", 1]


def test_convert_query_parameters_expands_lists():
    """Test that list parameters expand into an IN list."""
    resource = DuckDBResource(database_path=":memory:")
    query, params = resource._convert_query_parameters(
        "SELECT * FROM t WHERE id IN {ids:Array(Int64)}", {"ids": [1, 2, 3]}
    )
    assert query == "SELECT * FROM t WHERE id IN (?, ?, ?)"
    assert params == [1, 2, 3]


def test_convert_query_parameters_errors():
    """Test that missing parameters and empty lists are rejected."""
    resource = DuckDBResource(database_path=":memory:")
    with pytest.raises(KeyError):
        resource._convert_query_parameters("SELECT {a:String}, {b:String}", {"a": 1})
    with pytest.raises(ValueError):
        resource._convert_query_parameters("SELECT * FROM t WHERE id IN {ids:Array(Int64)}", {"ids": []})


def test_convert_query_without_parameters():
    """Test that queries without parameters pass through unchanged."""
    resource = DuckDBResource(database_path=":memory:")
    assert resource._convert_query_parameters("SELECT 1") == ("SELECT 1", None)


def test_execute_query_returns_columns(duckdb_resource):
    """Test that query results expose rows and column names."""
    result = duckdb_resource.execute_query("SELECT 1 AS a, 'x' AS b")
    assert query_to_dict_list(result) == [{"a": 1, "b": "x"}]


def test_ensure_catalog_is_idempotent(duckdb_resource):
    """Test that the catalog can be ensured repeatedly."""
    duckdb_resource.ensure_catalog()
    for table in ("partition_functions", "partition_boundaries", "migration_cursors", "partition_leases"):
        assert duckdb_resource.table_exists(table)


def test_transaction_commits(duckdb_resource):
    """Test that statements in a transaction are visible after commit."""
    duckdb_resource.execute_command("CREATE TABLE t (id INTEGER)")
    with duckdb_resource.transaction():
        duckdb_resource.execute_command("INSERT INTO t VALUES (1)")
        duckdb_resource.execute_command("INSERT INTO t VALUES (2)")
    assert query_scalar(duckdb_resource.execute_query("SELECT count(*) FROM t")) == 2


def test_transaction_rolls_back_on_error(duckdb_resource):
    """Test that an exception inside a transaction discards all its statements."""
    duckdb_resource.execute_command("CREATE TABLE t (id INTEGER)")
    with pytest.raises(RuntimeError):
        with duckdb_resource.transaction():
            duckdb_resource.execute_command("INSERT INTO t VALUES (1)")
            raise RuntimeError("boom")
    assert query_scalar(duckdb_resource.execute_query("SELECT count(*) FROM t")) == 0


def test_nested_transaction_joins_outer(duckdb_resource):
    """Test that a failure in the outer block also discards nested work."""
    duckdb_resource.execute_command("CREATE TABLE t (id INTEGER)")
    with pytest.raises(RuntimeError):
        with duckdb_resource.transaction():
            with duckdb_resource.transaction():
                duckdb_resource.execute_command("INSERT INTO t VALUES (1)")
            raise RuntimeError("boom")
    assert query_scalar(duckdb_resource.execute_query("SELECT count(*) FROM t")) == 0


def test_table_introspection(duckdb_resource):
    """Test column and constraint descriptions used by switch-out checks."""
    duckdb_resource.execute_command(
        "CREATE TABLE orders (id BIGINT PRIMARY KEY, order_date DATE, amount DOUBLE)"
    )
    columns = duckdb_resource.get_table_columns("orders")
    assert [(c["name"], c["type"]) for c in columns] == [
        ("id", "BIGINT"),
        ("order_date", "DATE"),
        ("amount", "DOUBLE"),
    ]
    assert "PRIMARY KEY(id)" in duckdb_resource.get_table_constraints("orders")
    assert duckdb_resource.get_table_columns("missing") == []


def test_run_with_timeout_interrupts_long_query(duckdb_resource):
    """Test that a statement running past the timeout surfaces as TransientError."""
    slow_query = "SELECT sum(a.range * b.range) FROM range(100000) a, range(100000) b"
    with pytest.raises(TransientError):
        duckdb_resource.run_with_timeout(lambda: duckdb_resource.execute_query(slow_query), 0.2)


def test_run_with_timeout_returns_result(duckdb_resource):
    """Test that fast work returns normally under a timeout."""
    result = duckdb_resource.run_with_timeout(lambda: duckdb_resource.execute_query("SELECT 42"), 5)
    assert query_scalar(result) == 42


def test_is_transient_error():
    """Test the transient/fatal classification of database errors."""
    assert is_transient_error(TransientError("timeout"))
    assert is_transient_error(duckdb.TransactionException("Transaction conflict"))
    assert is_transient_error(duckdb.InterruptException("Interrupted!"))
    assert not is_transient_error(duckdb.ConstraintException("Duplicate key"))
    assert not is_transient_error(duckdb.BinderException("column not found"))
    assert not is_transient_error(ConflictError("boundaries changed"))
    assert not is_transient_error(ValueError("bad"))


def test_quote_identifier():
    """Test identifier quoting, including embedded quotes."""
    assert quote_identifier("orders") == '"orders"'
    assert quote_identifier('we"ird') == '"we""ird"'


def test_lock_markers_do_not_match_unrelated_words():
    """Test that messages merely containing "lock" are not treated as transient."""
    assert not is_transient_error(duckdb.IOException("Could not read block 42 of the database file"))
    assert not is_transient_error(duckdb.IOException("unlock failed: file is closed"))
    assert is_transient_error(duckdb.IOException('Could not set lock on file "data.duckdb"'))
    assert is_transient_error(duckdb.IOException("deadlock detected"))


def test_placeholder_pattern_is_not_a_config_field():
    """Test that the placeholder pattern is class state rather than resource config."""
    assert "PARAM_RE" not in DuckDBResource.model_fields
    assert set(DuckDBResource.model_fields) >= {"database_path", "read_only"}
