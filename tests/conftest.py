import asyncio
import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

# The engine is created at import time, so point it at a scratch SQLite file
# before anything from watchrank is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="watchrank-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR / 'test.db'}"
os.environ["REORDER_RATE_LIMIT"] = "1000/minute"
os.environ["WATCHRANK_CONFIG"] = str(_DB_DIR / "watchrank.json")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from watchrank import config
from watchrank.database import async_session, engine
from watchrank.main import app
from watchrank.models import Base, Movie


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _insert_rows(rows: list[dict]) -> list[uuid.UUID]:
    base_time = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ids = []
    async with async_session() as session:
        for offset, row in enumerate(rows):
            movie = Movie(
                title=row["title"],
                poster_url=row.get("poster_url", "https://img.example.com/poster.jpg"),
                watch_url=row.get("watch_url", "https://watch.example.com/film"),
                year=row.get("year", 2000),
                rank=row["rank"],
                watched=row.get("watched", False),
                created_at=base_time + timedelta(minutes=offset),
            )
            session.add(movie)
            await session.flush()
            ids.append(movie.id)
        await session.commit()
    return ids


async def _stored_ranks() -> dict[str, int]:
    async with async_session() as session:
        rows = (await session.execute(select(Movie.id, Movie.rank))).all()
    return {str(movie_id): rank for movie_id, rank in rows}


@pytest.fixture(autouse=True)
def fresh_db():
    asyncio.run(_reset_schema())
    yield


@pytest.fixture(autouse=True)
def config_path(tmp_path, monkeypatch):
    path = tmp_path / "watchrank.json"
    monkeypatch.setattr(config, "CONFIG_PATH", path)
    return path


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def insert_rows():
    """Write rows straight to the store, bypassing API validation."""
    def _insert(rows: list[dict]) -> list[str]:
        return [str(movie_id) for movie_id in asyncio.run(_insert_rows(rows))]

    return _insert


@pytest.fixture
def stored_ranks():
    def _read() -> dict[str, int]:
        return asyncio.run(_stored_ranks())

    return _read


def movie_payload(title: str, rank: int, year: int = 2001) -> dict:
    slug = title.lower().replace(" ", "-")
    return {
        "title": title,
        "poster_url": f"https://img.example.com/{slug}.jpg",
        "watch_url": f"https://watch.example.com/{slug}",
        "year": year,
        "rank": rank,
    }


@pytest.fixture
def create_movie(client):
    def _create(title: str, rank: int, year: int = 2001, watched: bool = False) -> dict:
        res = client.post("/api/movies", json=movie_payload(title, rank, year))
        assert res.status_code == 201, res.text
        body = res.json()
        if watched:
            res = client.patch(f"/api/movies/{body['id']}/toggle")
            assert res.status_code == 200
            body = res.json()
        return body

    return _create


@pytest.fixture
def payload_for():
    return movie_payload
