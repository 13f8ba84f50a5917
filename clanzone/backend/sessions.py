"""Tracks open interaction sessions and the create-zone prompt tied to them."""

from __future__ import annotations

import itertools
import logging
from typing import Awaitable, Callable, Iterable

from .collaborators import PromptUI
from .scheduler import ScheduledHandle, Scheduler

_LOGGER = logging.getLogger(__name__)

VisibilityCheck = Callable[[int], Awaitable[bool]]


async def _always_visible(actor_id: int) -> bool:
    return True


class InteractionSessionTracker:
    def __init__(
        self,
        prompts: PromptUI,
        scheduler: Scheduler,
        target_kinds: Iterable[str],
        command: str,
        prompt_delay: float = 0.2,
        is_visible: VisibilityCheck | None = None,
    ) -> None:
        self._prompts = prompts
        self._scheduler = scheduler
        self._target_kinds = frozenset(target_kinds)
        self._command = command
        self._prompt_delay = prompt_delay
        self._is_visible = is_visible if is_visible is not None else _always_visible
        # actor id -> token of the session currently open for that actor
        self._open: dict[int, int] = {}
        self._tokens = itertools.count(1)
        self._pending: dict[int, ScheduledHandle] = {}

    @property
    def open_sessions(self) -> frozenset[int]:
        return frozenset(self._open)

    def recognizes(self, target_kind: str) -> bool:
        return target_kind in self._target_kinds

    async def on_session_open(self, actor_id: int, target_kind: str) -> bool:
        """Record an open session and schedule the prompt. Return True when newly opened."""
        if not self.recognizes(target_kind) or actor_id in self._open:
            return False
        token = next(self._tokens)
        self._open[actor_id] = token
        self._pending[actor_id] = self._scheduler.call_later(self._prompt_delay, self._show_prompt, actor_id, token)
        return True

    async def on_session_close(self, actor_id: int, target_kind: str) -> bool:
        if not self.recognizes(target_kind) or actor_id not in self._open:
            return False
        del self._open[actor_id]
        self._cancel_pending(actor_id)
        await self._destroy_prompt(actor_id)
        return True

    async def on_shutdown(self) -> None:
        actors = sorted(self._open)
        for actor_id in list(self._pending):
            self._cancel_pending(actor_id)
        self._open.clear()
        for actor_id in actors:
            await self._destroy_prompt(actor_id)
        if actors:
            _LOGGER.info("Closed %d interaction sessions on shutdown", len(actors))

    def _cancel_pending(self, actor_id: int) -> None:
        handle = self._pending.pop(actor_id, None)
        if handle is not None:
            handle.cancel()

    async def _show_prompt(self, actor_id: int, token: int) -> None:
        if self._open.get(actor_id) != token:
            return
        self._pending.pop(actor_id, None)
        if not await self._is_visible(actor_id):
            return
        # The session may have closed, or closed and reopened, during the visibility check.
        if self._open.get(actor_id) != token:
            return
        try:
            await self._prompts.show(actor_id, self._command)
        except Exception:  # pylint: disable=broad-exception-caught
            _LOGGER.warning("Could not show create-zone prompt to %s", actor_id, exc_info=True)

    async def _destroy_prompt(self, actor_id: int) -> None:
        try:
            await self._prompts.destroy(actor_id)
        except Exception:  # pylint: disable=broad-exception-caught
            _LOGGER.warning("Could not remove create-zone prompt for %s", actor_id, exc_info=True)
