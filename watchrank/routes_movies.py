import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db
from .models import Movie
from .ranking import list_movies_ordered, reorder_all
from .rate_limit import REORDER_RATE_LIMIT, limiter
from .schemas import MoviePayload, ReorderRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/movies", tags=["movies"])

RANK_TAKEN_MESSAGE = "Rank already in use. Choose another rank."


def _serialize_movie(movie: Movie) -> dict:
    return {
        "id": str(movie.id),
        "title": movie.title,
        "poster_url": movie.poster_url,
        "watch_url": movie.watch_url,
        "year": int(movie.year),
        "rank": int(movie.rank),
        "watched": bool(movie.watched),
        "created_at": movie.created_at.isoformat() if movie.created_at else None,
    }


def _parse_movie_id(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid movie id.")


async def _get_movie_or_404(db: AsyncSession, movie_id: uuid.UUID) -> Movie:
    movie = (
        await db.execute(select(Movie).where(Movie.id == movie_id))
    ).scalar_one_or_none()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found.")
    return movie


async def _is_rank_taken(db: AsyncSession, rank: int, exclude_id: uuid.UUID | None = None) -> bool:
    query = select(Movie.id).where(Movie.rank == rank)
    if exclude_id is not None:
        query = query.where(Movie.id != exclude_id)
    return (await db.execute(query)).first() is not None


@router.get("")
async def list_movies(db: AsyncSession = Depends(get_db)):
    rows = await list_movies_ordered(db)
    return [_serialize_movie(row) for row in rows]


@router.post("", status_code=201)
async def create_movie(
    body: MoviePayload,
    db: AsyncSession = Depends(get_db),
):
    if await _is_rank_taken(db, body.rank):
        raise HTTPException(status_code=409, detail=RANK_TAKEN_MESSAGE)

    movie = Movie(
        title=body.title,
        poster_url=body.poster_url,
        watch_url=body.watch_url,
        year=body.year,
        rank=body.rank,
        watched=False,
    )
    db.add(movie)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning("Rank %d was claimed concurrently during create", body.rank)
        raise HTTPException(status_code=409, detail=RANK_TAKEN_MESSAGE)
    return _serialize_movie(movie)


@router.put("/reorder-global")
@router.post("/reorder-global")
@limiter.limit(REORDER_RATE_LIMIT)
async def reorder_movies(
    request: Request,
    body: ReorderRequest,
    db: AsyncSession = Depends(get_db),
):
    rows = await reorder_all(db, body.ordered_ids, body.watched)
    return {
        "message": "Global order updated successfully.",
        "movies": [_serialize_movie(row) for row in rows],
    }


@router.put("/{movie_id}")
async def update_movie(
    movie_id: str,
    body: MoviePayload,
    db: AsyncSession = Depends(get_db),
):
    parsed_id = _parse_movie_id(movie_id)
    movie = await _get_movie_or_404(db, parsed_id)
    if await _is_rank_taken(db, body.rank, exclude_id=parsed_id):
        raise HTTPException(status_code=409, detail=RANK_TAKEN_MESSAGE)

    movie.title = body.title
    movie.poster_url = body.poster_url
    movie.watch_url = body.watch_url
    movie.year = body.year
    movie.rank = body.rank
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning("Rank %d was claimed concurrently during update of %s", body.rank, parsed_id)
        raise HTTPException(status_code=409, detail=RANK_TAKEN_MESSAGE)
    return _serialize_movie(movie)


@router.delete("/{movie_id}")
async def delete_movie(
    movie_id: str,
    db: AsyncSession = Depends(get_db),
):
    movie = await _get_movie_or_404(db, _parse_movie_id(movie_id))
    await db.delete(movie)
    await db.commit()
    return {"ok": True, "message": "Movie deleted successfully."}


@router.patch("/{movie_id}/toggle")
async def toggle_movie_watched(
    movie_id: str,
    db: AsyncSession = Depends(get_db),
):
    movie = await _get_movie_or_404(db, _parse_movie_id(movie_id))
    movie.watched = not movie.watched
    await db.commit()
    return _serialize_movie(movie)
