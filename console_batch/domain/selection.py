"""
console_batch.domain.selection -- Multi-select state feeding bulk operations.

Holds the set of selected user ids against the currently listed users and
derives the statistics the console uses to enable or disable bulk actions.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

UserRecord = Mapping[str, Any]


@dataclass(frozen=True)
class SelectionStats:
    selected_count: int
    total_count: int
    selected_users: tuple[UserRecord, ...]
    all_selected: bool
    none_selected: bool
    partial_selection: bool
    selected_roles: dict[str, int] = field(default_factory=dict)
    can_delete: bool = True
    can_ban: bool = True
    can_unban: bool = True


class BulkSelection:
    """Selected ids over a list of users.

    Selection order is kept so the resulting job targets users in the
    order they were picked.
    """

    def __init__(self, users: Sequence[UserRecord] = ()):
        self._users: tuple[UserRecord, ...] = tuple(users)
        self._selected: dict[str, None] = {}

    @property
    def users(self) -> tuple[UserRecord, ...]:
        return self._users

    def replace_users(self, users: Sequence[UserRecord]) -> None:
        """Swap the listed users, dropping selections that are no longer listed."""
        self._users = tuple(users)
        listed = {user["id"] for user in self._users}
        self._selected = {
            user_id: None for user_id in self._selected if user_id in listed
        }

    def select(self, user_id: str) -> None:
        self._selected.setdefault(user_id, None)

    def deselect(self, user_id: str) -> None:
        self._selected.pop(user_id, None)

    def toggle(self, user_id: str) -> None:
        if user_id in self._selected:
            self.deselect(user_id)
        else:
            self.select(user_id)

    def select_all(self) -> None:
        self._selected = {user["id"]: None for user in self._users}

    def select_none(self) -> None:
        self._selected = {}

    clear = select_none

    def select_by_filter(self, predicate: Callable[[UserRecord], bool]) -> None:
        self._selected = {
            user["id"]: None for user in self._users if predicate(user)
        }

    def select_many(self, user_ids: Iterable[str]) -> None:
        for user_id in user_ids:
            self.select(user_id)

    def is_selected(self, user_id: str) -> bool:
        return user_id in self._selected

    @property
    def selected_ids(self) -> tuple[str, ...]:
        return tuple(self._selected)

    def stats(self) -> SelectionStats:
        selected_users = tuple(
            user for user in self._users if user["id"] in self._selected
        )
        selected_count = len(self._selected)
        total_count = len(self._users)
        roles = Counter(user.get("role") or "user" for user in selected_users)

        return SelectionStats(
            selected_count=selected_count,
            total_count=total_count,
            selected_users=selected_users,
            all_selected=selected_count == total_count and total_count > 0,
            none_selected=selected_count == 0,
            partial_selection=0 < selected_count < total_count,
            selected_roles=dict(roles),
            can_delete=all(
                user.get("role") != "super_admin" for user in selected_users
            ),
            can_ban=all(not user.get("banned") for user in selected_users),
            can_unban=all(bool(user.get("banned")) for user in selected_users),
        )
