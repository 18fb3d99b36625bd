"""Tests for switchboard.services.kv_store.KVStore."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from switchboard.services.kv_store import KVStore, KVStoreError


def test_get_missing_key_returns_none(kv):
    assert kv.get("nope") is None


def test_set_then_get(kv):
    kv.set("user:u1:sources", ["src_a", "src_b"])
    assert kv.get("user:u1:sources") == ["src_a", "src_b"]


def test_set_overwrites_existing_value(kv):
    kv.set("source:src_a", {"id": "src_a", "lastMessage": ""})
    kv.set("source:src_a", {"id": "src_a", "lastMessage": "hello"})

    assert kv.get("source:src_a") == {"id": "src_a", "lastMessage": "hello"}


def test_delete_removes_key(kv):
    kv.set("message:m1", {"id": "m1"})
    kv.delete("message:m1")

    assert kv.get("message:m1") is None


def test_delete_missing_key_is_noop(kv):
    kv.delete("never-written")
    assert kv.get("never-written") is None


def test_keys_are_independent(kv):
    kv.set("a", 1)
    kv.set("b", {"nested": [1, 2, 3]})

    assert kv.get("a") == 1
    assert kv.get("b") == {"nested": [1, 2, 3]}


def test_read_failure_rolls_back_and_raises():
    db = MagicMock()
    db.get.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))

    with pytest.raises(KVStoreError):
        KVStore(db).get("source:src_a")
    db.rollback.assert_called_once()


def test_write_failure_rolls_back_and_raises():
    db = MagicMock()
    db.get.return_value = None
    db.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

    with pytest.raises(KVStoreError):
        KVStore(db).set("source:src_a", {"id": "src_a"})
    db.rollback.assert_called_once()
