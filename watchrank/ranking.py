import asyncio
import logging
import uuid
from typing import Iterable

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Movie

logger = logging.getLogger(__name__)

# Added to every rank before the final assignment so that no old rank can
# collide with a new one under the unique index.
RANK_SHIFT_OFFSET = 1_000_000

# Serializes bulk reorders inside one process. Separate worker processes
# sharing a database are still not coordinated.
_reorder_lock = asyncio.Lock()


def _canonical_order():
    return (Movie.rank.asc(), Movie.created_at.asc(), Movie.id.asc())


async def list_movies_ordered(db: AsyncSession) -> list[Movie]:
    rows = (
        await db.execute(
            select(Movie)
            .order_by(*_canonical_order())
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    return list(rows)


def _parse_movie_uuid(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value.strip())
    except ValueError:
        return None


def validate_ordered_ids(raw_ids: list, existing_ids: set[uuid.UUID]) -> list[uuid.UUID]:
    """Check a full-ranking payload against the stored id set.

    The payload must name every stored movie exactly once. Any violation is a
    400 and nothing is written.
    """
    if not isinstance(raw_ids, list):
        raise HTTPException(status_code=400, detail="ordered_ids must be an array.")

    if len({str(value) for value in raw_ids}) != len(raw_ids):
        raise HTTPException(status_code=400, detail="ordered_ids must not contain duplicates.")

    parsed: list[uuid.UUID] = []
    for value in raw_ids:
        movie_id = _parse_movie_uuid(value)
        if movie_id is None:
            raise HTTPException(status_code=400, detail=f"Invalid movie id in ordered_ids: {value}")
        parsed.append(movie_id)

    # Different spellings of one UUID (case, braces) only collide after parsing.
    if len(set(parsed)) != len(parsed):
        raise HTTPException(status_code=400, detail="ordered_ids must not contain duplicates.")

    if len(parsed) != len(existing_ids):
        raise HTTPException(status_code=400, detail="ordered_ids must include every movie id.")

    if set(parsed) != existing_ids:
        raise HTTPException(status_code=400, detail="ordered_ids does not match movie ids in the database.")

    return parsed


def validate_watched_updates(raw_watched: dict, ordered_ids: list[uuid.UUID]) -> dict[uuid.UUID, bool]:
    known = set(ordered_ids)
    updates: dict[uuid.UUID, bool] = {}
    for raw_id, watched in (raw_watched or {}).items():
        movie_id = _parse_movie_uuid(raw_id)
        if movie_id is None or movie_id not in known:
            raise HTTPException(status_code=400, detail=f"Invalid movie id in watched: {raw_id}")
        updates[movie_id] = bool(watched)
    return updates


async def apply_global_order(
    db: AsyncSession,
    ordered_ids: list[uuid.UUID],
    watched_updates: dict[uuid.UUID, bool] | None = None,
) -> None:
    """Give each id the rank equal to its 1-based position.

    Shift every rank out of 1..N, then write the final ranks by primary key,
    all in one transaction. Watched flips from the same drag commit with it.
    """
    if not ordered_ids:
        return
    try:
        await db.execute(
            update(Movie)
            .values(rank=Movie.rank + RANK_SHIFT_OFFSET)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            update(Movie),
            [
                {"id": movie_id, "rank": position}
                for position, movie_id in enumerate(ordered_ids, start=1)
            ],
        )
        for movie_id, watched in (watched_updates or {}).items():
            await db.execute(
                update(Movie)
                .where(Movie.id == movie_id)
                .values(watched=watched)
                .execution_options(synchronize_session=False)
            )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.exception("Global rank assignment failed (movies=%d)", len(ordered_ids))
        raise


async def reorder_all(db: AsyncSession, raw_ids: list, raw_watched: dict | None = None) -> list[Movie]:
    async with _reorder_lock:
        existing_ids = set((await db.execute(select(Movie.id))).scalars().all())
        ordered_ids = validate_ordered_ids(raw_ids, existing_ids)
        watched_updates = validate_watched_updates(raw_watched, ordered_ids)
        await apply_global_order(db, ordered_ids, watched_updates)
        return await list_movies_ordered(db)


def ranks_need_normalization(ranks: Iterable) -> bool:
    seen: set[int] = set()
    for rank in ranks:
        if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
            return True
        if rank in seen:
            return True
        seen.add(rank)
    return False


async def normalize_legacy_ranks(db: AsyncSession) -> bool:
    async with _reorder_lock:
        rows = (
            await db.execute(select(Movie.id, Movie.rank).order_by(*_canonical_order()))
        ).all()
        if not rows or not ranks_need_normalization(rank for _, rank in rows):
            return False
        await apply_global_order(db, [movie_id for movie_id, _ in rows])
    logger.info("Normalized %d movie ranks to a dense global sequence", len(rows))
    return True
