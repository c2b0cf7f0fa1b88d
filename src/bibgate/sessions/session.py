# ABOUTME: Base translation session: runs a translation as a task that can pause for a selection.
# ABOUTME: The first request gets either items or a ChoiceSet; a follow-up resumes the same task.

import asyncio
import logging
import secrets
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from bibgate.errors import GatewayError, TranslationError
from bibgate.translation import ChoiceSet

logger = logging.getLogger(__name__)


class SessionState(Enum):
    STARTED = "started"
    AWAITING_FETCH = "awaiting_fetch"
    AWAITING_SELECTION = "awaiting_selection"
    RESUMED = "resumed"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Outcome:
    """What one request of a session produced: items, or choices to pick from."""

    items: list[dict[str, Any]] | None = None
    choices: ChoiceSet | None = None

    @property
    def needs_selection(self) -> bool:
        return self.choices is not None


class TranslationSession:
    """A translation that may span two requests.

    The translation itself runs in a task. When it asks for a selection the
    current request returns the offered ChoiceSet and the task stays
    suspended until ``resume`` delivers the chosen subset; the rest of the
    run is then reported to the request that called ``resume``.

    Subclasses implement ``_run`` and hand ``select`` to the engine.
    """

    def __init__(
        self,
        *,
        session_id: str | None = None,
        preset_selection: Mapping[str, Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.id = session_id or secrets.token_hex(16)
        self.state = SessionState.STARTED
        self.started_at = clock()
        self.choices: ChoiceSet | None = None
        self._clock = clock
        self._preset_selection = preset_selection
        self._task: asyncio.Task[list[dict[str, Any]]] | None = None
        self._offer: asyncio.Future[ChoiceSet] | None = None
        self._selection: asyncio.Future[dict[str, str]] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.COMPLETED, SessionState.FAILED)

    async def start(self) -> Outcome:
        """Begin the translation and wait for its first outcome."""
        if self.state is not SessionState.STARTED:
            raise RuntimeError(f"Session {self.id} already started")
        self.state = SessionState.AWAITING_FETCH
        self._offer = asyncio.get_running_loop().create_future()
        self._task = asyncio.create_task(self._run())
        return await self._next_outcome()

    async def resume(self, selection: Any) -> Outcome:
        """Deliver a client's selection and wait for the translation to continue.

        Raises:
            BadRequestError: No or empty selection.
            SelectionMismatchError: Selection not among the offered choices.
        """
        if self.state is not SessionState.AWAITING_SELECTION or self._selection is None:
            raise RuntimeError(f"Session {self.id} is not awaiting a selection")
        assert self.choices is not None
        selected = self.choices.select(selection)

        self.state = SessionState.RESUMED
        self._offer = asyncio.get_running_loop().create_future()
        pending, self._selection = self._selection, None
        pending.set_result(selected)
        logger.debug("Session %s resumed with %d items", self.id, len(selected))
        return await self._next_outcome()

    async def select(self, raw: Mapping[Any, Any] | list[Any]) -> dict[str, str]:
        """Selection callback handed to the engine.

        Offers the choices to the waiting request and suspends until a
        follow-up resumes the session. A replayed session answers from its
        preset selection without suspending.
        """
        choices = ChoiceSet.from_translator(raw)
        if self._preset_selection is not None:
            preset, self._preset_selection = self._preset_selection, None
            self.choices = choices
            return choices.select(preset)

        if self._offer is None or self._offer.done():
            raise TranslationError("Translator requested a selection out of turn")
        self.choices = choices
        self._selection = asyncio.get_running_loop().create_future()
        self._offer.set_result(choices)
        return await self._selection

    def matches(self, url: str | None) -> bool:
        """Whether a follow-up's URL or query refers to this session."""
        return url is not None and url == self.selection_url

    @property
    def selection_url(self) -> str | None:
        return None

    def selection_body(self) -> dict[str, Any]:
        assert self.choices is not None
        return {"session": self.id, "items": self.choices.to_dict()}

    def age(self) -> float:
        return self._clock() - self.started_at

    async def close(self) -> None:
        """Cancel a suspended or running translation."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("Session %s failed while closing", self.id, exc_info=True)
        if not self.is_terminal:
            self.state = SessionState.FAILED

    async def _run(self) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def _next_outcome(self) -> Outcome:
        assert self._task is not None and self._offer is not None
        offer = self._offer
        try:
            await asyncio.wait({self._task, offer}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self._task.cancel()
            raise

        if offer.done():
            self.state = SessionState.AWAITING_SELECTION
            # The offer is re-armed by resume().
            self._offer = None
            logger.info("Session %s awaiting selection of %d items", self.id, len(offer.result()))
            return Outcome(choices=offer.result())

        offer.cancel()
        self._offer = None
        try:
            items = self._task.result()
        except GatewayError:
            self.state = SessionState.FAILED
            raise
        except Exception as exc:
            self.state = SessionState.FAILED
            logger.exception("Session %s failed", self.id)
            raise TranslationError(str(exc)) from exc
        self.state = SessionState.COMPLETED
        return Outcome(items=items)
