"""
Unit Tests for the Profile Repository

Tests PostgREST query construction and error classification using an httpx
mock transport.
"""

import httpx
import pytest

from telehealth_cache.core.exceptions import (
    BackendError,
    BackendNotConfiguredError,
    BackendTransientError,
)
from telehealth_cache.domain.models import DoctorListFilters
from telehealth_cache.infrastructure.backend.profile_repository import (
    SupabaseProfileRepository,
    doctor_list_params,
)


def make_repository(settings, handler):
    configured = settings.model_copy(
        update={"SUPABASE_URL": "https://db.example", "SUPABASE_KEY": "service-key"}
    )
    client = httpx.AsyncClient(
        base_url="https://db.example/rest/v1", transport=httpx.MockTransport(handler)
    )
    return SupabaseProfileRepository(settings=configured, client=client)


@pytest.mark.unit
class TestDoctorListParams:
    """Test suite for doctor listing query parameters."""

    def test_unfiltered(self):
        assert doctor_list_params(None) == [
            ("select", "*"),
            ("role", "eq.doctor"),
            ("order", "created_at.desc"),
        ]

    def test_all_filters(self):
        """Test that every filter maps to a PostgREST operator."""
        filters = DoctorListFilters(
            specialization="dermatology", verified=True, min_fee=10, max_fee=50.5, search="ada"
        )

        params = doctor_list_params(filters)

        assert ("specialization", "eq.dermatology") in params
        assert ("verified", "eq.true") in params
        assert ("consultation_fee", "gte.10") in params
        assert ("consultation_fee", "lte.50.5") in params
        assert ("or", "(display_name.ilike.*ada*,specialization.ilike.*ada*)") in params
        assert params[-1] == ("order", "created_at.desc")

    def test_search_term_cannot_break_or_clause(self):
        params = dict(doctor_list_params(DoctorListFilters(search="a,b)")))

        assert params["or"] == "(display_name.ilike.*a b*,specialization.ilike.*a b*)"


@pytest.mark.unit
class TestSupabaseProfileRepository:
    """Test suite for SupabaseProfileRepository."""

    @pytest.mark.asyncio
    async def test_fetch_user_returns_first_row(self, settings):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json=[{"id": "u1", "email": "pat@example.com"}])

        repository = make_repository(settings, handler)

        row = await repository.fetch_user("u1")

        assert row == {"id": "u1", "email": "pat@example.com"}
        assert "/rest/v1/profiles" in seen["url"]
        assert "id=eq.u1" in seen["url"]

    @pytest.mark.asyncio
    async def test_fetch_user_not_found(self, settings):
        repository = make_repository(settings, lambda request: httpx.Response(200, json=[]))

        assert await repository.fetch_user("nobody") is None

    @pytest.mark.asyncio
    async def test_fetch_doctor_filters_role(self, settings):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[{"id": "d1", "email": "d@example.com", "role": "doctor"}])

        repository = make_repository(settings, handler)

        assert (await repository.fetch_doctor("d1"))["id"] == "d1"
        assert seen["params"]["role"] == "eq.doctor"

    @pytest.mark.asyncio
    async def test_list_doctors(self, settings):
        rows = [{"id": "d1", "email": "d@example.com", "role": "doctor"}]
        repository = make_repository(settings, lambda request: httpx.Response(200, json=rows))

        assert await repository.list_doctors(DoctorListFilters(verified=True)) == rows

    @pytest.mark.asyncio
    async def test_update_profile_sends_patch(self, settings):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = request.content
            seen["prefer"] = request.headers.get("Prefer")
            return httpx.Response(204)

        repository = make_repository(settings, handler)

        await repository.update_profile("u1", {"display_name": "Pat"})

        assert seen["method"] == "PATCH"
        assert b'"display_name"' in seen["body"]
        assert seen["prefer"] == "return=minimal"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [502, 503, 504])
    async def test_gateway_errors_are_transient(self, settings, status):
        repository = make_repository(settings, lambda request: httpx.Response(status))

        with pytest.raises(BackendTransientError):
            await repository.fetch_user("u1")

    @pytest.mark.asyncio
    async def test_client_errors_are_permanent(self, settings):
        repository = make_repository(settings, lambda request: httpx.Response(403, text="denied"))

        with pytest.raises(BackendError) as exc_info:
            await repository.fetch_user("u1")

        assert not isinstance(exc_info.value, BackendTransientError)
        assert exc_info.value.details["status_code"] == 403

    @pytest.mark.asyncio
    async def test_transport_errors_are_transient(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        repository = make_repository(settings, handler)

        with pytest.raises(BackendTransientError) as exc_info:
            await repository.fetch_user("u1")

        assert exc_info.value.details["original_error"] == "ConnectError"

    @pytest.mark.asyncio
    async def test_unconfigured_backend_raises(self, settings):
        repository = SupabaseProfileRepository(settings=settings)

        with pytest.raises(BackendNotConfiguredError) as exc_info:
            await repository.fetch_user("u1")

        assert "suggestion" in exc_info.value.details
