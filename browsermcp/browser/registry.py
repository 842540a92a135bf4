"""In-memory mapping from session identifiers to live browser tabs."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional
from uuid import uuid4

from playwright.async_api import Page

logger = logging.getLogger(__name__)


@dataclass
class PageHandle:
    """A live tab addressable by ``session_id``."""

    session_id: str
    page: Page
    created_at: float = field(default_factory=time.monotonic)
    last_used: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_used = time.monotonic()

    def age_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.monotonic()) - self.created_at

    def idle_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.monotonic()) - self.last_used


class SessionRegistry:
    """Authoritative ``session_id -> PageHandle`` map.

    Every method here is synchronous.  Callers running on the event loop can
    therefore check and mutate the map without another task interleaving.
    """

    def __init__(self) -> None:
        self._handles: Dict[str, PageHandle] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._handles

    def __iter__(self) -> Iterator[PageHandle]:
        return iter(list(self._handles.values()))

    def new_session_id(self) -> str:
        """Return a uuid4 string not currently in use."""
        session_id = str(uuid4())
        while session_id in self._handles:
            session_id = str(uuid4())
        return session_id

    def get(self, session_id: Optional[str]) -> Optional[PageHandle]:
        """Return the handle for ``session_id`` and mark it as used."""
        if not session_id:
            return None
        handle = self._handles.get(session_id)
        if handle is not None:
            handle.touch()
        return handle

    def register(self, page: Page) -> PageHandle:
        """Store ``page`` under a fresh identifier and return its handle."""
        handle = PageHandle(session_id=self.new_session_id(), page=page)
        self._handles[handle.session_id] = handle
        logger.debug("Registered page session %s", handle.session_id)
        return handle

    def remove(self, session_id: str, *, page: Optional[Page] = None) -> Optional[PageHandle]:
        """Drop ``session_id`` from the map.

        When ``page`` is given the entry is only removed if it still points at
        that page.
        """
        handle = self._handles.get(session_id)
        if handle is None:
            return None
        if page is not None and handle.page is not page:
            return None
        del self._handles[session_id]
        return handle

    def clear(self) -> List[PageHandle]:
        """Empty the registry and return the handles it held."""
        handles = list(self._handles.values())
        self._handles.clear()
        return handles

    def idle_since(self, max_idle_seconds: float) -> List[PageHandle]:
        now = time.monotonic()
        return [h for h in self._handles.values() if h.idle_seconds(now) >= max_idle_seconds]


__all__ = ["PageHandle", "SessionRegistry"]
