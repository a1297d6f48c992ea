"""
Unit Tests for the offline-aware API client and resource clients
"""
import httpx
import pytest

from examdash.api_client import ApiClient, cache_key
from examdash.exceptions import ApiError
from examdash.resources import PlatformAPI


@pytest.fixture
def api(manager) -> ApiClient:
    return ApiClient(manager)


class TestOnlineRequests:
    """Normal traffic"""

    @pytest.mark.asyncio
    async def test_get_returns_data_and_caches_it(self, api, manager, backend):
        backend.route("GET", "/api/categories", json=[{"id": "1", "name": "SSC"}])

        data = await api.get("/categories")

        assert data == [{"id": "1", "name": "SSC"}]
        assert await manager.get_offline_data("/categories") == data

    @pytest.mark.asyncio
    async def test_cached_get_expires_after_ttl(self, api, manager, backend, monkeypatch):
        backend.route("GET", "/api/tests", json={"items": []})
        monkeypatch.setattr("examdash.api_client.now_ms", lambda: 0)

        await api.get("/tests")

        # Written with expiry 0 + CACHE_TTL_SECONDS, long past
        assert await manager.get_offline_data("/tests") is None

    @pytest.mark.asyncio
    async def test_mutation_is_sent_not_queued(self, api, manager, backend, category_payload):
        backend.route("POST", "/api/categories", status=201, json={"id": "9", **category_payload})

        created = await api.post("/categories", category_payload)

        assert created["id"] == "9"
        assert manager.pending_actions == 0
        assert backend.calls() == [("POST", "/api/categories")]

    @pytest.mark.asyncio
    async def test_error_status_raises_api_error(self, api, manager, backend):
        backend.route("PUT", "/api/categories/1", status=400, json={"error": "Name is required"})

        with pytest.raises(ApiError) as exc_info:
            await api.put("/categories/1", {"name": ""})

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Name is required"
        assert manager.pending_actions == 0

    @pytest.mark.asyncio
    async def test_network_error_propagates_while_online(self, api, manager, backend):
        backend.route("DELETE", "/api/tests/1", fail=True)

        with pytest.raises(httpx.ConnectError):
            await api.delete("/tests/1")

        assert manager.pending_actions == 0

    @pytest.mark.asyncio
    async def test_unauthorized_invokes_callback(self, manager, backend):
        logged_out = []
        api = ApiClient(manager, on_unauthorized=lambda: logged_out.append(True))
        backend.route("GET", "/api/categories", status=401, json={"error": "Unauthorized"})

        with pytest.raises(ApiError):
            await api.get("/categories")

        assert logged_out == [True]

    @pytest.mark.asyncio
    async def test_unauthorized_clears_stored_token(self, api, manager, backend):
        manager.update_token(lambda: "expired-token")
        backend.route("GET", "/api/tests", status=401, json={"error": "Unauthorized"})

        with pytest.raises(ApiError):
            await api.get("/tests")
        await api.get("/categories")

        assert manager.current_token() is None
        assert "Authorization" not in backend.requests[-1].headers

    @pytest.mark.asyncio
    async def test_bearer_token_from_provider(self, api, manager, backend):
        manager.update_token(lambda: "live-token")

        await api.get("/categories")

        assert backend.requests[0].headers["Authorization"] == "Bearer live-token"


class TestOfflineRequests:
    """Queueing and cache fallback"""

    @pytest.mark.asyncio
    async def test_offline_mutation_is_queued(self, api, manager, backend, category_payload):
        manager.update_token(lambda: "tok")
        manager.set_online(False)
        backend.offline = True

        result = await api.post("/categories", category_payload)

        assert result == {"success": True, "offline": True}
        [action] = await manager.get_pending_actions()
        assert action.type == "POST_/categories"
        assert action.method == "POST"
        assert action.payload == category_payload
        assert action.auth_token == "tok"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_offline_mutation_keeps_query_string(self, api, manager, backend):
        manager.set_online(False)
        backend.offline = True
        await api.request("/questions/9", "DELETE", params={"force": "true", "lang": "hi"})

        [action] = await manager.get_pending_actions()
        assert action.url == "/questions/9?force=true&lang=hi"

        backend.offline = False
        manager.set_online(True)
        await manager.wait_idle()

        [request] = backend.requests
        assert request.url.path == "/api/questions/9"
        assert dict(request.url.params) == {"force": "true", "lang": "hi"}

    @pytest.mark.asyncio
    async def test_offline_get_falls_back_to_cache(self, api, manager, backend):
        backend.route("GET", "/api/categories/1", json={"id": "1", "name": "SSC"})
        await api.get("/categories/1")

        manager.set_online(False)
        backend.offline = True
        data = await api.get("/categories/1")

        assert data == {"id": "1", "name": "SSC", "from_cache": True}

    @pytest.mark.asyncio
    async def test_cached_list_is_wrapped(self, api, manager, backend):
        backend.route("GET", "/api/categories", json=[{"id": "1"}])
        await api.get("/categories")

        manager.set_online(False)
        backend.offline = True

        assert await api.get("/categories") == {"data": [{"id": "1"}], "from_cache": True}

    @pytest.mark.asyncio
    async def test_offline_get_never_queues(self, api, manager, backend):
        manager.set_online(False)
        backend.offline = True

        with pytest.raises(httpx.ConnectError):
            await api.get("/questions")

        assert await manager.get_pending_actions() == []

    @pytest.mark.asyncio
    async def test_queued_mutation_replays_on_reconnect(self, api, manager, backend):
        manager.set_online(False)
        backend.offline = True
        await api.delete("/tests/5")

        backend.offline = False
        manager.set_online(True)
        await manager.wait_idle()

        assert backend.calls() == [("DELETE", "/api/tests/5")]
        assert manager.pending_actions == 0


class TestCacheKey:

    def test_plain_url(self):
        assert cache_key("/categories") == "/categories"

    def test_params_are_sorted(self):
        assert cache_key("/admin/users", {"page": 2, "limit": 10}) == "/admin/users?limit=10&page=2"

    def test_none_params_are_dropped(self):
        assert cache_key("/admin/users", {"search": None}) == "/admin/users"

    def test_existing_query_string(self):
        assert cache_key("/tests/1?lang=en", {"x": 1}) == "/tests/1?lang=en&x=1"


class TestPlatformAPI:
    """Resource routes"""

    @pytest.mark.asyncio
    async def test_content_resources_use_main_api(self, api, backend):
        platform = PlatformAPI(api)

        await platform.categories.get_all()
        await platform.test_series.by_category("c1")
        await platform.tests.by_test_series("s1")
        await platform.live_tests.add_questions("l1", {"questionIds": ["q1"]})
        await platform.current_affairs.comment("ca1", "admin", "Nice")

        assert backend.calls() == [
            ("GET", "/api/categories"),
            ("GET", "/api/test-series/category/c1"),
            ("GET", "/api/tests/testseries/s1"),
            ("POST", "/api/live-tests/l1/questions"),
            ("POST", "/api/current-affairs/ca1/comment"),
        ]

    @pytest.mark.asyncio
    async def test_test_lookup_sends_language(self, api, backend):
        await PlatformAPI(api).tests.get_by_id("t1", lang="hi")

        assert backend.requests[0].url.params["lang"] == "hi"

    @pytest.mark.asyncio
    async def test_user_actions_go_to_auth_api(self, api, backend):
        platform = PlatformAPI(api)

        await platform.users.suspend("u1")
        await platform.users.bulk_set_role(["u1", "u2"], "admin")

        assert [str(r.url) for r in backend.requests] == [
            "http://auth.test/admin/user/u1/suspend",
            "http://auth.test/admin/users/bulk-role",
        ]
        assert backend.requests[0].method == "PATCH"

    @pytest.mark.asyncio
    async def test_offline_user_suspend_is_queued_as_patch(self, api, manager, backend):
        manager.set_online(False)

        await PlatformAPI(api).users.suspend("u1")

        [action] = await manager.get_pending_actions()
        assert action.method == "PATCH"
        assert action.url == "http://auth.test/admin/user/u1/suspend"
