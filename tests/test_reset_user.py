"""Tests for the reset_user maintenance script."""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from scripts import reset_user


@pytest.fixture
def users():
    cur = MagicMock()

    @contextmanager
    def fake_txn():
        yield cur

    with patch.object(reset_user, "txn", fake_txn), patch.object(
        reset_user, "users_repository"
    ) as repo:
        yield repo, cur


class TestResetUser:
    def test_deletes_user_stored_without_plus(self, users):
        repo, cur = users
        repo.find_by_phone.side_effect = lambda _, phone: (
            {"id": "user-1"} if phone == "5511999998888" else None
        )

        assert reset_user.main(["+5511999998888"]) == 0
        repo.delete_user.assert_called_once_with(cur, "user-1")

    def test_accepts_plus_form(self, users):
        repo, cur = users
        repo.find_by_phone.side_effect = [None, {"id": "user-2"}]

        assert reset_user.main(["5511999998888"]) == 0
        repo.delete_user.assert_called_once_with(cur, "user-2")

    def test_unknown_user(self, users):
        repo, _ = users
        repo.find_by_phone.return_value = None

        assert reset_user.main(["+5511000000000"]) == 1
        repo.delete_user.assert_not_called()
