"""
Backing-store access for profiles.

``ProfileRepository`` is the boundary the domain caches depend on.
``SupabaseProfileRepository`` implements it over the PostgREST API with httpx.

Error classification:
- Transport failures and 502/503/504 → BackendTransientError (retried upstream)
- Any other HTTP error → BackendError (surfaced immediately)
"""

from typing import Any, Protocol

import httpx

from telehealth_cache.core.config.constants import Stage
from telehealth_cache.core.config.settings import Settings, get_settings
from telehealth_cache.core.exceptions import (
    BackendError,
    BackendNotConfiguredError,
    BackendTransientError,
)
from telehealth_cache.core.logging.logger import get_logger, log_stage
from telehealth_cache.domain.models import DoctorListFilters

logger = get_logger(__name__)

PROFILES_TABLE = "profiles"
_TRANSIENT_STATUS = frozenset({502, 503, 504})


class ProfileRepository(Protocol):
    async def fetch_user(self, user_id: str) -> dict[str, Any] | None: ...

    async def list_doctors(self, filters: DoctorListFilters | None = None) -> list[dict[str, Any]]: ...

    async def fetch_doctor(self, doctor_id: str) -> dict[str, Any] | None: ...

    async def update_profile(self, user_id: str, changes: dict[str, Any]) -> None: ...


def doctor_list_params(filters: DoctorListFilters | None) -> list[tuple[str, str]]:
    """PostgREST query parameters for a filtered doctor listing, newest first."""
    params: list[tuple[str, str]] = [("select", "*"), ("role", "eq.doctor")]
    if filters is not None:
        if filters.specialization:
            params.append(("specialization", f"eq.{filters.specialization}"))
        if filters.verified is not None:
            params.append(("verified", f"eq.{str(filters.verified).lower()}"))
        if filters.min_fee is not None:
            params.append(("consultation_fee", f"gte.{filters.min_fee:g}"))
        if filters.max_fee is not None:
            params.append(("consultation_fee", f"lte.{filters.max_fee:g}"))
        if filters.search:
            term = filters.search.replace(",", " ").replace("(", " ").replace(")", " ").strip()
            params.append(("or", f"(display_name.ilike.*{term}*,specialization.ilike.*{term}*)"))
    params.append(("order", "created_at.desc"))
    return params


class SupabaseProfileRepository:
    """
    Usage:
        repository = SupabaseProfileRepository()
        row = await repository.fetch_user("u1")
        await repository.aclose()
    """

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self._settings = (settings or get_settings()).backend
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if not self._settings.is_configured:
            raise BackendNotConfiguredError(
                "Backing store is not configured"
            ).with_suggestion("Set SUPABASE_URL and SUPABASE_KEY")

        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self._settings.SUPABASE_URL.rstrip('/')}/rest/v1",
                timeout=self._settings.BACKEND_TIMEOUT,
                headers={
                    "apikey": self._settings.SUPABASE_KEY,
                    "Authorization": f"Bearer {self._settings.SUPABASE_KEY}",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def _request(self, method: str, params: list[tuple[str, str]], **kwargs) -> httpx.Response:
        client = self._get_client()
        try:
            response = await client.request(method, f"/{PROFILES_TABLE}", params=params, **kwargs)
        except httpx.TransportError as e:
            log_stage(
                logger, Stage.BACKEND_FETCH, "Backing store unreachable",
                level="warning", method=method, error=str(e),
            )
            raise BackendTransientError.from_exception(e, table=PROFILES_TABLE) from e

        if response.status_code in _TRANSIENT_STATUS:
            raise BackendTransientError(
                f"Backing store returned {response.status_code}",
                details={"status_code": response.status_code, "table": PROFILES_TABLE},
            )
        if response.is_error:
            log_stage(
                logger, Stage.BACKEND_FETCH, "Backing store query failed",
                level="error", method=method, status_code=response.status_code,
            )
            raise BackendError(
                f"Backing store returned {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )
        return response

    async def _fetch_one(self, params: list[tuple[str, str]]) -> dict[str, Any] | None:
        rows = (await self._request("GET", params)).json()
        return rows[0] if rows else None

    async def fetch_user(self, user_id: str) -> dict[str, Any] | None:
        return await self._fetch_one([("select", "*"), ("id", f"eq.{user_id}")])

    async def fetch_doctor(self, doctor_id: str) -> dict[str, Any] | None:
        return await self._fetch_one(
            [("select", "*"), ("id", f"eq.{doctor_id}"), ("role", "eq.doctor")]
        )

    async def list_doctors(self, filters: DoctorListFilters | None = None) -> list[dict[str, Any]]:
        response = await self._request("GET", doctor_list_params(filters))
        return response.json() or []

    async def update_profile(self, user_id: str, changes: dict[str, Any]) -> None:
        await self._request(
            "PATCH",
            [("id", f"eq.{user_id}")],
            json=changes,
            headers={"Prefer": "return=minimal"},
        )
