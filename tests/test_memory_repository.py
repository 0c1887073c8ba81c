from __future__ import annotations

import pytest

from subtracker_auth.domain.contracts import AccountDraft
from subtracker_auth.domain.errors import DuplicateKey, TransactionTimeout
from subtracker_auth.memory_repository import InMemoryAccountRepository


def _draft(email: str = "a@x.com") -> AccountDraft:
    return AccountDraft(email=email, password_hash="$2b$04$" + "a" * 53, name="Ann")


def test_insert_assigns_id_and_timestamps():
    repo = InMemoryAccountRepository()
    account = repo.insert(_draft())
    assert account.account_id
    assert account.created_at == account.updated_at
    assert repo.find_by_email("a@x.com") == account


def test_staged_insert_is_visible_only_inside_its_transaction():
    repo = InMemoryAccountRepository()
    with repo.transaction(5.0) as tx:
        repo.insert(_draft(), tx=tx)
        assert repo.find_by_email("a@x.com", tx=tx) is not None
        assert repo.find_by_email("a@x.com") is None
    assert repo.find_by_email("a@x.com") is not None
    assert repo.count() == 1


def test_abort_discards_staged_inserts_and_releases_email():
    repo = InMemoryAccountRepository()
    with pytest.raises(RuntimeError):
        with repo.transaction(5.0) as tx:
            repo.insert(_draft(), tx=tx)
            raise RuntimeError("boom")
    assert repo.find_by_email("a@x.com") is None
    assert repo.count() == 0
    repo.insert(_draft())
    assert repo.count() == 1


def test_concurrent_transaction_insert_hits_reservation():
    repo = InMemoryAccountRepository()
    with repo.transaction(5.0) as first:
        repo.insert(_draft(), tx=first)
        with pytest.raises(DuplicateKey):
            with repo.transaction(5.0) as second:
                repo.insert(_draft(), tx=second)
    assert repo.count() == 1


def test_insert_rejects_committed_email():
    repo = InMemoryAccountRepository()
    repo.insert(_draft())
    with pytest.raises(DuplicateKey) as excinfo:
        repo.insert(_draft())
    assert excinfo.value.email == "a@x.com"


def test_commit_after_deadline_times_out_and_aborts():
    repo = InMemoryAccountRepository()
    with pytest.raises(TransactionTimeout):
        with repo.transaction(0.0) as tx:
            repo.insert(_draft(), tx=tx)
    assert repo.count() == 0
    repo.insert(_draft())
