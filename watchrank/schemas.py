from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

MIN_YEAR = 1888
MAX_YEAR = 2100
REORDER_MAX_ITEMS = 5000


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc)


class MoviePayload(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    poster_url: str = Field(min_length=1, max_length=2000)
    watch_url: str = Field(min_length=1, max_length=2000)
    year: int = Field(ge=MIN_YEAR, le=MAX_YEAR)
    rank: int = Field(ge=1)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Title is required.")
        return stripped

    @field_validator("poster_url", "watch_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        stripped = value.strip()
        if not _is_absolute_url(stripped):
            raise ValueError("Poster and watch link must be valid URLs.")
        return stripped


class ReorderRequest(BaseModel):
    ordered_ids: list[str] = Field(max_length=REORDER_MAX_ITEMS)
    # Watched flags flipped by the same drag, keyed by movie id.
    watched: dict[str, bool] = Field(default_factory=dict)
