"""
Unit tests for the unit-of-work retry wrapper
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from bolao.db.unit_of_work import is_retryable_db_error, run_unit_of_work


class _Orig(Exception):
    def __init__(self, sqlstate=None):
        super().__init__("driver error")
        self.sqlstate = sqlstate


class FakeSession:
    def __init__(self):
        self.rollbacks = 0
    
    async def rollback(self):
        self.rollbacks += 1


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr("bolao.db.unit_of_work.settings.commit_retry_base_delay_ms", 1)
    monkeypatch.setattr("bolao.db.unit_of_work.settings.commit_retry_max_delay_ms", 2)
    monkeypatch.setattr("bolao.db.unit_of_work.settings.commit_retry_attempts", 3)


def test_retryable_classification():
    assert is_retryable_db_error(OperationalError("UPDATE", {}, _Orig("40P01")))
    assert is_retryable_db_error(OperationalError("UPDATE", {}, _Orig("40001")))
    assert is_retryable_db_error(OperationalError("UPDATE", {}, Exception("database is locked")))
    assert not is_retryable_db_error(IntegrityError("INSERT", {}, _Orig("23505")))
    assert not is_retryable_db_error(ValueError("nope"))


async def test_retries_deadlock_then_succeeds():
    session = FakeSession()
    calls = []
    
    async def op():
        calls.append(1)
        if len(calls) < 3:
            raise OperationalError("UPDATE", {}, _Orig("40P01"))
        return "done"
    
    assert await run_unit_of_work(session, "test", op) == "done"
    assert len(calls) == 3
    assert session.rollbacks == 2


async def test_gives_up_after_max_attempts():
    session = FakeSession()
    
    async def op():
        raise OperationalError("UPDATE", {}, _Orig("40001"))
    
    with pytest.raises(OperationalError):
        await run_unit_of_work(session, "test", op)
    assert session.rollbacks == 3


async def test_non_retryable_error_propagates_immediately():
    session = FakeSession()
    calls = []
    
    async def op():
        calls.append(1)
        raise ValueError("bad input")
    
    with pytest.raises(ValueError):
        await run_unit_of_work(session, "test", op)
    assert len(calls) == 1
    assert session.rollbacks == 1
