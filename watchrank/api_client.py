import logging
from typing import Mapping

import httpx
import pydantic

from .config import load_config
from .errors import ConflictError, NetworkError, NotFoundError, ValidationError, WatchlistError
from .schemas import MoviePayload

logger = logging.getLogger(__name__)

API_PREFIX = "/api/movies"
DEFAULT_TIMEOUT = 10


def _error_detail(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        detail = payload.get("detail") or payload.get("message")
        if isinstance(detail, str) and detail:
            return detail
    return f"Request failed ({resp.status_code})."


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    detail = _error_detail(resp)
    status = resp.status_code
    if status in (400, 422):
        raise ValidationError(detail, status)
    if status == 404:
        raise NotFoundError(detail, status)
    if status == 409:
        raise ConflictError(detail, status)
    if status >= 500:
        raise NetworkError(detail, status)
    raise WatchlistError(detail, status)


def validate_draft(draft: Mapping | MoviePayload) -> dict:
    """Boundary check for movie fields before anything is sent."""
    try:
        payload = draft if isinstance(draft, MoviePayload) else MoviePayload.model_validate(dict(draft))
    except pydantic.ValidationError as exc:
        errors = exc.errors()
        reason = str(errors[0].get("msg") or "Invalid movie.") if errors else "Invalid movie."
        raise ValidationError(reason.removeprefix("Value error, ")) from exc
    return payload.model_dump()


class WatchlistApi:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_config(cls, **kwargs) -> "WatchlistApi":
        return cls(load_config()["api_base_url"], **kwargs)

    async def __aenter__(self) -> "WatchlistApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: dict | None = None):
        try:
            resp = await self._client.request(method, f"{API_PREFIX}{path}", json=json)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed to complete: %s", method, path or "/", exc)
            raise NetworkError(f"Request failed: {exc}") from exc
        _raise_for_status(resp)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            logger.warning("%s %s returned a non-JSON body (%d)", method, path or "/", resp.status_code)
            raise NetworkError(f"Unreadable response ({resp.status_code}).", resp.status_code) from exc

    async def list_movies(self) -> list[dict]:
        return await self._request("GET", "")

    async def create_movie(self, draft: Mapping | MoviePayload) -> dict:
        return await self._request("POST", "", json=validate_draft(draft))

    async def update_movie(self, movie_id: str, draft: Mapping | MoviePayload) -> dict:
        return await self._request("PUT", f"/{movie_id}", json=validate_draft(draft))

    async def delete_movie(self, movie_id: str) -> dict:
        return await self._request("DELETE", f"/{movie_id}")

    async def toggle_watched(self, movie_id: str) -> dict:
        return await self._request("PATCH", f"/{movie_id}/toggle")

    async def reorder_all(self, ordered_ids: list[str], watched: Mapping[str, bool] | None = None) -> dict:
        body = {"ordered_ids": list(ordered_ids)}
        if watched:
            body["watched"] = dict(watched)
        return await self._request("PUT", "/reorder-global", json=body)
