"""
ListenerRegistry: storage and lookup for EventBus listeners.

Supports exact event names (``notification.match_full``) and wildcard
patterns (``notification.*``, ``*.match_full``, ``*``). Registry methods are
synchronous: mutations happen between awaits on a single event loop, so no
locking is needed.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Dict, List, Tuple

from rallypoint.core.event.types import EventListener


def matches_pattern(event_name: str, pattern: str) -> bool:
    """
    Wildcard match where ``*`` spans any run of characters, dots included.

    >>> matches_pattern("notification.match_full", "notification.*")
    True
    >>> matches_pattern("notification.match_full", "match.*")
    False
    """
    if pattern == "*":
        return True
    if "*" not in pattern:
        return event_name == pattern
    # character classes are not part of the pattern language
    escaped = pattern.replace("[", "[[]").replace("?", "[?]")
    return fnmatchcase(event_name, escaped)


def _sort_key(listener: EventListener) -> Tuple[int, str]:
    return (listener.priority.value, listener.identifier)


class ListenerRegistry:
    """Exact and wildcard listeners, kept sorted by (priority, identifier)."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[EventListener]] = {}
        self._wildcard_listeners: List[Tuple[str, EventListener]] = []

    def add_listener(
        self,
        event_name: str,
        listener: EventListener,
        *,
        allow_duplicates: bool,
    ) -> bool:
        """Register a listener; False when blocked as a duplicate identifier."""
        if "*" in event_name:
            if not allow_duplicates and any(
                pattern == event_name and existing.identifier == listener.identifier
                for pattern, existing in self._wildcard_listeners
            ):
                return False
            self._wildcard_listeners.append((event_name, listener))
            self._wildcard_listeners.sort(key=lambda pair: _sort_key(pair[1]))
            return True

        listeners = self._listeners.setdefault(event_name, [])
        if not allow_duplicates and any(l.identifier == listener.identifier for l in listeners):
            return False
        listeners.append(listener)
        listeners.sort(key=_sort_key)
        return True

    def remove_listener(self, event_name: str, identifier: str) -> bool:
        removed = False

        if event_name in self._listeners:
            before = len(self._listeners[event_name])
            kept = [l for l in self._listeners[event_name] if l.identifier != identifier]
            removed = len(kept) < before
            if kept:
                self._listeners[event_name] = kept
            else:
                del self._listeners[event_name]

        before_wc = len(self._wildcard_listeners)
        self._wildcard_listeners = [
            (pattern, l)
            for pattern, l in self._wildcard_listeners
            if not (pattern == event_name and l.identifier == identifier)
        ]
        return removed or len(self._wildcard_listeners) < before_wc

    def clear_all(self) -> int:
        total = self.get_total_listener_count()
        self._listeners.clear()
        self._wildcard_listeners.clear()
        return total

    def extract_listeners_for_event(self, event_name: str) -> List[EventListener]:
        """
        Collect every listener for ``event_name`` and prune ``once`` listeners
        in the same step, so two concurrent publishes cannot both run a
        one-shot listener.
        """
        result: List[EventListener] = []

        exact = self._listeners.get(event_name, [])
        result.extend(exact)
        kept_exact = [l for l in exact if not l.once]
        if kept_exact:
            self._listeners[event_name] = kept_exact
        else:
            self._listeners.pop(event_name, None)

        kept_wildcards: List[Tuple[str, EventListener]] = []
        for pattern, listener in self._wildcard_listeners:
            if matches_pattern(event_name, pattern):
                result.append(listener)
                if listener.once:
                    continue
            kept_wildcards.append((pattern, listener))
        self._wildcard_listeners = kept_wildcards

        result.sort(key=_sort_key)
        return result

    def get_listener_count_for_event(self, event_name: str) -> int:
        exact = len(self._listeners.get(event_name, []))
        wildcard = sum(
            1 for pattern, _ in self._wildcard_listeners if matches_pattern(event_name, pattern)
        )
        return exact + wildcard

    def get_total_listener_count(self) -> int:
        return sum(len(v) for v in self._listeners.values()) + len(self._wildcard_listeners)

    def get_all_event_keys(self) -> List[str]:
        keys = set(self._listeners)
        keys.update(pattern for pattern, _ in self._wildcard_listeners)
        return sorted(keys)
