"""Tests for console_batch.domain.selection."""

import pytest

from console_batch.domain.selection import BulkSelection


@pytest.fixture
def listed(user_factory):
    return [
        user_factory("u1"),
        user_factory("u2", banned=True),
        user_factory("a1", role="admin"),
        user_factory("s1", role="super_admin"),
    ]


class TestSelectionOps:
    def test_select_keeps_pick_order(self, listed):
        selection = BulkSelection(listed)
        selection.select("a1")
        selection.select("u1")
        selection.select("a1")
        assert selection.selected_ids == ("a1", "u1")

    def test_toggle(self, listed):
        selection = BulkSelection(listed)
        selection.toggle("u1")
        assert selection.is_selected("u1")
        selection.toggle("u1")
        assert not selection.is_selected("u1")

    def test_select_all_and_none(self, listed):
        selection = BulkSelection(listed)
        selection.select_all()
        assert selection.selected_ids == ("u1", "u2", "a1", "s1")
        selection.select_none()
        assert selection.selected_ids == ()

    def test_clear_alias(self, listed):
        selection = BulkSelection(listed)
        selection.select_many(["u1", "u2"])
        selection.clear()
        assert selection.selected_ids == ()

    def test_select_by_filter(self, listed):
        selection = BulkSelection(listed)
        selection.select_by_filter(lambda user: user["role"] == "user")
        assert selection.selected_ids == ("u1", "u2")

    def test_replace_users_drops_unlisted(self, listed):
        selection = BulkSelection(listed)
        selection.select_many(["u1", "s1"])
        selection.replace_users(listed[:2])
        assert selection.selected_ids == ("u1",)
        assert len(selection.users) == 2


class TestSelectionStats:
    def test_empty(self):
        stats = BulkSelection().stats()
        assert stats.none_selected
        assert not stats.all_selected
        assert not stats.partial_selection

    def test_partial(self, listed):
        selection = BulkSelection(listed)
        selection.select_many(["u1", "a1"])
        stats = selection.stats()
        assert stats.selected_count == 2
        assert stats.total_count == 4
        assert stats.partial_selection
        assert stats.selected_roles == {"user": 1, "admin": 1}

    def test_all_selected(self, listed):
        selection = BulkSelection(listed)
        selection.select_all()
        assert selection.stats().all_selected

    def test_cannot_delete_super_admin(self, listed):
        selection = BulkSelection(listed)
        selection.select_many(["u1", "s1"])
        assert not selection.stats().can_delete

    def test_ban_unban_flags(self, listed):
        selection = BulkSelection(listed)
        selection.select("u1")
        stats = selection.stats()
        assert stats.can_ban and not stats.can_unban

        selection.select("u2")
        stats = selection.stats()
        assert not stats.can_ban and not stats.can_unban

        selection.deselect("u1")
        assert selection.stats().can_unban
