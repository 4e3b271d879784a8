from dataclasses import dataclass, field, replace
from typing import Sequence

from .drop_target import DropContext
from .ordering import SECTION_MASTER, SECTION_WATCHED, WatchlistMovie, sort_by_rank

ORDER_MODE_SECTION = "section"
ORDER_MODE_MASTER = "master"
ORDER_MODES = (ORDER_MODE_SECTION, ORDER_MODE_MASTER)


@dataclass(frozen=True)
class ReorderPlan:
    next_movies: tuple[WatchlistMovie, ...]
    changed: bool
    moved_across_sections: bool
    target_section: str
    moved_id: str
    from_rank: int | None = None
    to_rank: int | None = None
    watched_changes: dict[str, bool] = field(default_factory=dict)

    @property
    def ordered_ids(self) -> list[str]:
        return [movie.id for movie in self.next_movies]

    @property
    def status_message(self) -> str:
        if self.moved_across_sections:
            return "Moved to Watched" if self.target_section == SECTION_WATCHED else "Moved to Unwatched"
        return "Order updated."


def section_insertion_index(movies: Sequence[WatchlistMovie], section: str) -> int:
    """Index at the watched/unwatched boundary for a drop with no target card.

    Watched drops land after the last watched movie; unwatched drops land
    before the first watched movie. Both fall back to the end.
    """
    if section == SECTION_WATCHED:
        last_watched = -1
        for cursor, movie in enumerate(movies):
            if movie.watched:
                last_watched = cursor
        return len(movies) if last_watched == -1 else last_watched + 1
    if section == SECTION_MASTER:
        return len(movies)
    for cursor, movie in enumerate(movies):
        if movie.watched:
            return cursor
    return len(movies)


def plan_reorder(
    movies: Sequence[WatchlistMovie],
    dragged_id: str,
    context: DropContext,
    source_section: str | None,
    mode: str = ORDER_MODE_SECTION,
) -> ReorderPlan:
    if mode not in ORDER_MODES:
        raise ValueError(f"Unknown order mode: {mode!r}")

    ordered = sort_by_rank(movies)
    previous = {movie.id: (movie.rank, movie.watched) for movie in ordered}

    dragged_index = next((i for i, movie in enumerate(ordered) if movie.id == dragged_id), None)
    if dragged_index is None:
        return ReorderPlan(
            next_movies=tuple(ordered),
            changed=False,
            moved_across_sections=False,
            target_section=context.section,
            moved_id=dragged_id,
        )

    remaining = ordered[:dragged_index] + ordered[dragged_index + 1:]
    dragged = ordered[dragged_index]

    section_mode = mode == ORDER_MODE_SECTION
    if section_mode and context.section != SECTION_MASTER:
        dragged = replace(dragged, watched=context.section == SECTION_WATCHED)

    target_index = None
    if context.target_id is not None:
        target_index = next(
            (i for i, movie in enumerate(remaining) if movie.id == context.target_id),
            None,
        )
    if target_index is not None:
        insert_at = target_index
    elif section_mode:
        insert_at = section_insertion_index(remaining, context.section)
    else:
        insert_at = len(remaining)

    sequence = remaining[:insert_at] + [dragged] + remaining[insert_at:]
    next_movies = tuple(replace(movie, rank=position) for position, movie in enumerate(sequence, start=1))

    changed = any(previous.get(movie.id) != (movie.rank, movie.watched) for movie in next_movies)
    watched_changes = {
        movie.id: movie.watched for movie in next_movies if previous[movie.id][1] != movie.watched
    }
    moved_across_sections = (
        section_mode
        and bool(source_section)
        and bool(context.section)
        and source_section != context.section
        and context.section != SECTION_MASTER
    )

    return ReorderPlan(
        next_movies=next_movies,
        changed=changed,
        moved_across_sections=moved_across_sections,
        target_section=context.section,
        moved_id=dragged_id,
        from_rank=previous[dragged_id][0],
        to_rank=insert_at + 1,
        watched_changes=watched_changes,
    )
