import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Mapping

from .api_client import WatchlistApi, validate_draft
from .config import load_config, save_config
from .drop_target import DropContext
from .errors import BusyError, ConflictError, NotFoundError, ValidationError, WatchlistError
from .ordering import OrderingModel, WatchlistMovie
from .planner import ORDER_MODE_SECTION, ORDER_MODES, ReorderPlan, plan_reorder
from .schemas import MoviePayload

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class Status:
    message: str = ""
    is_error: bool = False


@dataclass(frozen=True)
class DragStarted:
    movie_id: str
    source_section: str


@dataclass(frozen=True)
class DragMoved:
    context: DropContext


@dataclass(frozen=True)
class Dropped:
    context: DropContext | None = None


@dataclass(frozen=True)
class DragCancelled:
    pass


DragEvent = DragStarted | DragMoved | Dropped | DragCancelled


@dataclass(frozen=True)
class DragSession:
    dragged_id: str
    source_section: str
    current_drop_target: DropContext | None = None


@dataclass
class ReorderAttempt:
    state: SyncState = SyncState.IDLE
    history: list[SyncState] = field(default_factory=lambda: [SyncState.IDLE])
    plan: ReorderPlan | None = None
    error: WatchlistError | None = None

    def advance(self, state: SyncState) -> None:
        self.state = state
        self.history.append(state)


def _failure_message(exc: WatchlistError, fallback: str) -> str:
    if isinstance(exc, (ValidationError, ConflictError)):
        return exc.message
    if isinstance(exc, NotFoundError):
        return "Movie not found."
    return fallback


class SyncCoordinator:
    """Applies mutations to the local model first; one request in flight at a time."""

    def __init__(
        self,
        api: WatchlistApi,
        model: OrderingModel | None = None,
        *,
        mode: str = ORDER_MODE_SECTION,
        on_render: Callable[[OrderingModel], None] | None = None,
        on_status: Callable[[Status], None] | None = None,
    ):
        if mode not in ORDER_MODES:
            raise ValueError(f"Unknown order mode: {mode!r}")
        self.api = api
        self.model = model if model is not None else OrderingModel()
        self.mode = mode
        self.status = Status()
        self.drag_session: DragSession | None = None
        self._on_render = on_render
        self._on_status = on_status
        self._pending = 0

    @classmethod
    def from_config(cls, api: WatchlistApi, **kwargs) -> "SyncCoordinator":
        return cls(api, mode=load_config()["order_mode"], **kwargs)

    @property
    def busy(self) -> bool:
        return self._pending > 0

    def _render(self) -> None:
        if self._on_render is not None:
            self._on_render(self.model)

    def _set_status(self, message: str = "", is_error: bool = False) -> None:
        self.status = Status(message, is_error)
        if self._on_status is not None:
            self._on_status(self.status)

    def _report_failure(self, exc: WatchlistError, fallback: str) -> None:
        logger.warning("%s (%s)", fallback, exc.message)
        self._set_status(_failure_message(exc, fallback), is_error=True)

    @asynccontextmanager
    async def _mutation(self):
        if self.busy:
            raise BusyError("Another change is still being saved.")
        self._pending += 1
        try:
            yield
        finally:
            self._pending -= 1

    def set_order_mode(self, mode: str, persist: bool = True) -> None:
        if mode not in ORDER_MODES:
            raise ValueError(f"Unknown order mode: {mode!r}")
        self.mode = mode
        if persist:
            config = load_config()
            config["order_mode"] = mode
            save_config(config)
        self._set_status("")
        self._render()

    # Drag gestures

    async def dispatch(self, event: DragEvent) -> ReorderAttempt | None:
        if isinstance(event, DragStarted):
            if self.busy or self.drag_session is not None:
                logger.debug("Ignoring drag start for %s while busy", event.movie_id)
                return None
            self.drag_session = DragSession(event.movie_id, event.source_section)
            self._render()
            return None

        if isinstance(event, DragMoved):
            if self.drag_session is not None:
                self.drag_session = replace(self.drag_session, current_drop_target=event.context)
            return None

        if isinstance(event, DragCancelled):
            self._end_drag()
            return None

        if isinstance(event, Dropped):
            session = self.drag_session
            self._end_drag()
            if session is None:
                return None
            context = event.context or session.current_drop_target
            if context is None or self.busy:
                return None
            return await self.reorder(session.dragged_id, context, session.source_section)

        raise TypeError(f"Unsupported drag event: {event!r}")

    def _end_drag(self) -> None:
        if self.drag_session is None:
            return
        self.drag_session = None
        self._render()

    async def reorder(
        self,
        dragged_id: str,
        context: DropContext,
        source_section: str | None = None,
    ) -> ReorderAttempt:
        attempt = ReorderAttempt()
        async with self._mutation():
            attempt.advance(SyncState.PLANNING)
            snapshot = self.model.snapshot()
            plan = plan_reorder(snapshot, dragged_id, context, source_section, self.mode)
            attempt.plan = plan
            if not plan.changed:
                attempt.advance(SyncState.IDLE)
                return attempt

            self.model.replace_all(plan.next_movies)
            attempt.advance(SyncState.APPLIED)
            self._set_status(plan.status_message)
            self._render()

            try:
                payload = await self.api.reorder_all(plan.ordered_ids, plan.watched_changes)
            except BaseException as exc:
                self.model.replace_all(snapshot)
                attempt.advance(SyncState.ROLLED_BACK)
                if not isinstance(exc, WatchlistError):
                    # Cancellation or an unexpected client bug: restore, then propagate.
                    self._set_status("Unable to save new order.", is_error=True)
                    self._render()
                    raise
                attempt.error = exc
                self._report_failure(exc, "Unable to save new order.")
                self._render()
                return attempt

            movies = payload.get("movies") if isinstance(payload, dict) else None
            if isinstance(movies, list):
                self.model.replace_all(movies)
            attempt.advance(SyncState.CONFIRMED)
            self._render()
            return attempt

    # Single-movie operations

    async def load(self) -> list[WatchlistMovie]:
        async with self._mutation():
            try:
                movies = await self.api.list_movies()
            except WatchlistError as exc:
                self._report_failure(exc, "Failed to load movies.")
                raise
            self.model.replace_all(movies)
            self._set_status("")
            self._render()
            return self.model.movies

    async def create_movie(self, draft: Mapping | MoviePayload) -> WatchlistMovie:
        async with self._mutation():
            try:
                payload = validate_draft(draft)
                created = await self.api.create_movie(payload)
            except WatchlistError as exc:
                self._report_failure(exc, "Unable to save movie.")
                raise
            movie = self.model.upsert(created)
            self._set_status("Movie added.")
            self._render()
            return movie

    async def update_movie(self, movie_id: str, draft: Mapping | MoviePayload) -> WatchlistMovie:
        async with self._mutation():
            try:
                payload = validate_draft(draft)
                updated = await self.api.update_movie(movie_id, payload)
            except WatchlistError as exc:
                if isinstance(exc, NotFoundError):
                    self.model.remove(movie_id)
                    self._render()
                self._report_failure(exc, "Unable to save movie.")
                raise
            movie = self.model.upsert(updated)
            self._set_status("Movie updated.")
            self._render()
            return movie

    async def delete_movie(self, movie_id: str) -> None:
        async with self._mutation():
            try:
                await self.api.delete_movie(movie_id)
            except WatchlistError as exc:
                if isinstance(exc, NotFoundError):
                    self.model.remove(movie_id)
                    self._render()
                self._report_failure(exc, "Unable to delete movie.")
                raise
            self.model.remove(movie_id)
            self._set_status("Movie deleted.")
            self._render()

    async def toggle_watched(self, movie_id: str) -> WatchlistMovie | None:
        if self.model.get(movie_id) is None:
            return None
        async with self._mutation():
            snapshot = self.model.snapshot()
            self.model.toggle_locally(movie_id)
            self._render()
            try:
                updated = await self.api.toggle_watched(movie_id)
            except BaseException as exc:
                self.model.replace_all(snapshot)
                if isinstance(exc, NotFoundError):
                    self.model.remove(movie_id)
                if isinstance(exc, WatchlistError):
                    self._report_failure(exc, "Unable to update watched status.")
                else:
                    self._set_status("Unable to update watched status.", is_error=True)
                self._render()
                raise
            movie = self.model.upsert(updated)
            self._set_status("Status updated.")
            self._render()
            return movie

    async def open_movie(self, movie_id: str) -> str | None:
        """Return the watch link, marking the movie watched on first open."""
        movie = self.model.get(movie_id)
        if movie is None:
            return None
        link = movie.watch_url
        if not movie.watched:
            try:
                await self.toggle_watched(movie_id)
            except WatchlistError:
                # toggle_watched already reported the failure and rolled back.
                pass
        return link
