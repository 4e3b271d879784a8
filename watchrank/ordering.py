import math
from dataclasses import dataclass, replace
from typing import Iterable, Mapping

SECTION_MASTER = "master"
SECTION_UNWATCHED = "unwatched"
SECTION_WATCHED = "watched"
SECTIONS = (SECTION_MASTER, SECTION_UNWATCHED, SECTION_WATCHED)


@dataclass(frozen=True)
class WatchlistMovie:
    id: str
    title: str
    poster_url: str
    watch_url: str
    year: int
    rank: int
    watched: bool = False
    created_at: str | None = None

    @property
    def section(self) -> str:
        return SECTION_WATCHED if self.watched else SECTION_UNWATCHED


def _coerce_int(value) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(number)


def normalize_movie(raw: Mapping | WatchlistMovie) -> WatchlistMovie:
    if isinstance(raw, WatchlistMovie):
        return replace(
            raw,
            id=str(raw.id),
            year=_coerce_int(raw.year),
            rank=_coerce_int(raw.rank),
            watched=bool(raw.watched),
        )
    return WatchlistMovie(
        id=str(raw["id"]),
        title=str(raw.get("title") or ""),
        poster_url=str(raw.get("poster_url") or ""),
        watch_url=str(raw.get("watch_url") or ""),
        year=_coerce_int(raw.get("year")),
        rank=_coerce_int(raw.get("rank")),
        watched=bool(raw.get("watched")),
        created_at=raw.get("created_at"),
    )


def sort_by_rank(movies: Iterable[WatchlistMovie]) -> list[WatchlistMovie]:
    # sorted() is stable, so equal ranks keep their incoming order.
    return sorted(movies, key=lambda movie: movie.rank)


class OrderingModel:
    def __init__(self, movies: Iterable[Mapping | WatchlistMovie] = ()):
        self._movies: list[WatchlistMovie] = []
        self.replace_all(movies)

    @property
    def movies(self) -> list[WatchlistMovie]:
        return list(self._movies)

    def __len__(self) -> int:
        return len(self._movies)

    def __iter__(self):
        return iter(list(self._movies))

    def snapshot(self) -> list[WatchlistMovie]:
        return list(self._movies)

    def replace_all(self, movies: Iterable[Mapping | WatchlistMovie]) -> None:
        normalized = sort_by_rank(normalize_movie(movie) for movie in movies)
        self._movies = normalized

    def upsert(self, movie: Mapping | WatchlistMovie) -> WatchlistMovie:
        normalized = normalize_movie(movie)
        next_movies = list(self._movies)
        for index, existing in enumerate(next_movies):
            if existing.id == normalized.id:
                next_movies[index] = normalized
                break
        else:
            next_movies.append(normalized)
        self._movies = sort_by_rank(next_movies)
        return normalized

    def remove(self, movie_id: str) -> bool:
        next_movies = [movie for movie in self._movies if movie.id != movie_id]
        removed = len(next_movies) != len(self._movies)
        self._movies = next_movies
        return removed

    def get(self, movie_id: str) -> WatchlistMovie | None:
        for movie in self._movies:
            if movie.id == movie_id:
                return movie
        return None

    def toggle_locally(self, movie_id: str) -> WatchlistMovie | None:
        movie = self.get(movie_id)
        if movie is None:
            return None
        return self.upsert(replace(movie, watched=not movie.watched))

    def next_rank(self) -> int:
        if not self._movies:
            return 1
        return max(movie.rank for movie in self._movies) + 1

    def unique_years(self) -> list[int]:
        return sorted({movie.year for movie in self._movies})

    def filtered(self, search: str = "", year: int | None = None) -> list[WatchlistMovie]:
        needle = (search or "").strip().lower()
        matches = []
        for movie in self._movies:
            if year is not None and movie.year != year:
                continue
            if needle and needle not in movie.title.lower() and needle not in str(movie.year):
                continue
            matches.append(movie)
        return sort_by_rank(matches)

    def section(self, name: str) -> list[WatchlistMovie]:
        if name == SECTION_MASTER:
            return list(self._movies)
        wants_watched = name == SECTION_WATCHED
        return [movie for movie in self._movies if movie.watched == wants_watched]
