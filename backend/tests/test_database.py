"""Tests for classifying database errors."""

import socket

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from propmap.core.database import is_connection_failure


class PgError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def _wrapped_refusal() -> OperationalError:
    orig = PgError("connect failed")
    orig.__cause__ = ConnectionRefusedError(111, "Connection refused")
    return OperationalError("SELECT 1", {}, orig)


@pytest.mark.parametrize(
    "exc",
    [
        ConnectionResetError(104, "Connection reset by peer"),
        socket.gaierror(-2, "Name or service not known"),
        TimeoutError(),
        OperationalError("SELECT 1", {}, PgError("no route", "08006")),
        OperationalError("SELECT 1", {}, PgError("shutting down", "57P01")),
        OperationalError("SELECT 1", {}, PgError("gone"), connection_invalidated=True),
        _wrapped_refusal(),
    ],
)
def test_unreachable_database_is_a_connection_failure(exc):
    assert is_connection_failure(exc) is True


@pytest.mark.parametrize(
    "exc",
    [
        FileNotFoundError(2, "No such file or directory"),
        PermissionError(13, "Permission denied"),
        OperationalError("UPDATE gov_properties", {}, PgError("deadlock detected", "40P01")),
        IntegrityError("UPDATE gov_properties", {}, PgError("duplicate key", "23505")),
        ValueError("not a database error"),
    ],
)
def test_other_errors_are_not_connection_failures(exc):
    assert is_connection_failure(exc) is False
