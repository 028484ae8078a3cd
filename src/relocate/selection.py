from __future__ import annotations

import logging
from collections.abc import Iterable

from .models import EnvironmentMode, InstanceRecord

logger = logging.getLogger(__name__)


def fuzzy_match(query: str, target: str) -> bool:
    """Return True when ``query`` appears in ``target`` as an ordered subsequence.

    Matching is case-insensitive and greedy: the target is scanned once from
    the left and the query position only ever advances, so "ca" matches
    "commerce-app" while "ac" does not.
    """
    if not query:
        return True

    query = query.lower()
    target = target.lower()

    position = 0
    for char in target:
        if position < len(query) and query[position] == char:
            position += 1
    return position == len(query)


def viewport_window(cursor: int, length: int, capacity: int) -> tuple[int, int]:
    start = 0 if cursor < capacity else cursor - capacity + 1
    end = min(length, start + capacity)
    return start, end


class SelectionState:
    """Instance list plus the environment, search query and cursor applied to it.

    ``filtered`` is derived from ``instances``, ``env_mode`` and ``query`` and is
    rebuilt after every change to any of them.
    """

    def __init__(self, env_mode: EnvironmentMode = EnvironmentMode.STAGING) -> None:
        self.instances: tuple[InstanceRecord, ...] = ()
        self.env_mode = env_mode
        self.query = ""
        self.cursor = 0
        self.loading = True
        self.error: str | None = None
        self._filtered: tuple[InstanceRecord, ...] = ()

    @property
    def filtered(self) -> tuple[InstanceRecord, ...]:
        return self._filtered

    @property
    def selected(self) -> InstanceRecord | None:
        if not self._filtered:
            return None
        return self._filtered[self.cursor]

    def load(self, records: Iterable[InstanceRecord]) -> None:
        self.instances = tuple(sorted(records, key=lambda item: item.display_name))
        self.loading = False
        self.error = None
        self._refilter()
        self._clamp_cursor()
        logger.info(
            "Loaded %d instances, %d visible in %s",
            len(self.instances),
            len(self._filtered),
            self.env_mode.label,
        )

    def fail(self, message: str) -> None:
        self.instances = ()
        self.loading = False
        self.error = message
        self._refilter()
        self.cursor = 0
        logger.error("Instance load failed: %s", message)

    def set_environment(self, mode: EnvironmentMode) -> None:
        if mode is self.env_mode:
            return
        self.env_mode = mode
        self._refilter()
        self.cursor = 0

    def set_query(self, query: str) -> None:
        self.query = query
        self._refilter()
        self.cursor = 0

    def append_char(self, char: str) -> None:
        self.set_query(self.query + char)

    def backspace(self) -> None:
        if not self.query:
            self.cursor = 0
            return
        self.set_query(self.query[:-1])

    def move_cursor(self, delta: int) -> None:
        if not self._filtered:
            return
        self.cursor = max(0, min(self.cursor + delta, len(self._filtered) - 1))

    def _refilter(self) -> None:
        candidates = [item for item in self.instances if self.env_mode.accepts(item.key_name)]
        if self.query:
            candidates = [item for item in candidates if _matches_any(self.query, item)]
        self._filtered = tuple(candidates)

    def _clamp_cursor(self) -> None:
        if not self._filtered:
            self.cursor = 0
            return
        self.cursor = max(0, min(self.cursor, len(self._filtered) - 1))


def _matches_any(query: str, record: InstanceRecord) -> bool:
    return any(
        fuzzy_match(query, field)
        for field in (record.name, record.instance_id, record.ip, record.instance_type)
    )
