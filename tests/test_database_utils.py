"""
Tests for the keyspace session: sync and async execution, error wrapping and
keyspace dropping.
"""

import threading

import pytest

from stressbench.config_loader import ConfigurationError
from stressbench.database_utils import (
    OperationExecutionError, PreparedStatement, Session, drop_keyspace, find_processes_holding,
)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "keyspace.sqlite")


def test_prepared_statement_binds_positional_values():
    bound = PreparedStatement("SELECT ? + ?").bind(1, 2)
    assert bound.query == "SELECT ? + ?"
    assert bound.params == (1, 2)


def test_async_results_are_visible_to_other_connections(db_path):
    with Session(db_path, io_threads=4) as session:
        session.execute("CREATE TABLE t (k INTEGER PRIMARY KEY)")
        insert = session.prepare("INSERT INTO t (k) VALUES (?)")
        futures = [session.execute_async(insert.bind(i)) for i in range(50)]
        for future in futures:
            future.result(timeout=5)
        assert session.execute("SELECT count(*) FROM t") == [(50,)]


def test_async_errors_are_wrapped(db_path):
    with Session(db_path, io_threads=1) as session:
        statement = PreparedStatement("SELECT * FROM missing_table").bind()
        future = session.execute_async(statement)
        error = future.exception(timeout=5)
        assert isinstance(error, OperationExecutionError)
        assert error.statement == statement


def test_sync_errors_are_wrapped(db_path):
    with Session(db_path) as session:
        with pytest.raises(OperationExecutionError):
            session.execute("NOT SQL AT ALL")


def test_each_io_thread_uses_its_own_connection(db_path):
    seen = set()
    lock = threading.Lock()

    with Session(db_path, io_threads=4) as session:
        original = session._connection

        def tracking():
            conn = original()
            with lock:
                seen.add((threading.get_ident(), id(conn)))
            return conn

        session._connection = tracking
        futures = [session.execute_async(PreparedStatement("SELECT 1").bind()) for _ in range(40)]
        for future in futures:
            future.result(timeout=5)

    threads = {ident for ident, _ in seen}
    connections = {conn for _, conn in seen}
    assert len(threads) == len(connections)


def test_shut_down_session_rejects_work(db_path):
    session = Session(db_path)
    session.shutdown()
    session.shutdown()
    with pytest.raises(OperationExecutionError):
        session.execute_async(PreparedStatement("SELECT 1").bind())


def test_drop_keyspace_removes_database_files(db_path, tmp_path):
    with Session(db_path) as session:
        session.execute("CREATE TABLE t (k INTEGER)")
    drop_keyspace(db_path)
    assert not any(p.name.startswith("keyspace.sqlite") for p in tmp_path.iterdir())


def test_drop_missing_keyspace_is_a_no_op(db_path):
    drop_keyspace(db_path)


def test_own_process_does_not_block_drop(db_path):
    with Session(db_path) as session:
        session.execute("CREATE TABLE t (k INTEGER)")
        assert find_processes_holding(db_path) == []


def test_drop_refuses_when_another_process_holds_the_file(db_path, monkeypatch):
    monkeypatch.setattr("stressbench.database_utils.find_processes_holding", lambda path: [4242])
    with pytest.raises(ConfigurationError, match="4242"):
        drop_keyspace(db_path)
