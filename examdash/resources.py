"""
Resource clients for the platform's admin screens

Content resources (categories, test series, tests, ...) live on the main
API; users and notifications live on the auth API. All calls go through
ApiClient, so they are cached and queued like any other request.
"""

from typing import Any, Dict, List, Optional

from examdash.api_client import ApiClient


class ResourceClient:
    """CRUD over one REST collection"""

    def __init__(self, api: ApiClient, path: str, base_url: str = ""):
        self.api = api
        self.path = path.strip("/")
        self.base_url = base_url.rstrip("/")

    def url(self, *parts: Any) -> str:
        segments = [self.path] + [str(p).strip("/") for p in parts]
        return f"{self.base_url}/" + "/".join(segments)

    async def get_all(self, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.api.get(self.url(), params=params)

    async def get_by_id(self, id: str) -> Any:
        return await self.api.get(self.url(id))

    async def create(self, data: Dict[str, Any]) -> Any:
        return await self.api.post(self.url(), data)

    async def update(self, id: str, data: Dict[str, Any]) -> Any:
        return await self.api.put(self.url(id), data)

    async def delete(self, id: str) -> Any:
        return await self.api.delete(self.url(id))


class TestSeriesClient(ResourceClient):

    async def by_category(self, category_id: str) -> Any:
        return await self.api.get(self.url("category", category_id))


class TestsClient(ResourceClient):

    async def get_by_id(self, id: str, lang: str = "en") -> Any:
        return await self.api.get(self.url(id), params={"lang": lang})

    async def by_test_series(self, series_id: str) -> Any:
        return await self.api.get(self.url("testseries", series_id))

    async def generate(self, data: Dict[str, Any]) -> Any:
        """Build a test from the question bank"""
        return await self.api.post(self.url("generate"), data)


class LiveTestsClient(ResourceClient):

    async def add_questions(self, id: str, data: Dict[str, Any]) -> Any:
        return await self.api.post(self.url(id, "questions"), data)


class CurrentAffairsClient(ResourceClient):

    async def like(self, id: str) -> Any:
        return await self.api.post(self.url(id, "like"))

    async def comment(self, id: str, user: str, text: str) -> Any:
        return await self.api.post(self.url(id, "comment"), {"user": user, "text": text})


class NotificationsClient(ResourceClient):
    """Push notifications; reads go through /admin/notifications, sends through /push"""

    async def send(self, data: Dict[str, Any]) -> Any:
        return await self.api.post(f"{self.base_url}/push/send", data)

    async def mark_as_read(self, id: str) -> Any:
        return await self.api.patch(self.url(id, "read"))

    async def stats(self) -> Any:
        return await self.api.get(f"{self.base_url}/push/stats")


class UsersClient(ResourceClient):
    """Admin user management; single-user routes use /admin/user/<id>"""

    def user_url(self, id: str, *parts: Any) -> str:
        return f"{self.base_url}/admin/user/" + "/".join([str(id)] + [str(p) for p in parts])

    async def get_by_id(self, id: str) -> Any:
        return await self.api.get(self.user_url(id))

    async def update(self, id: str, data: Dict[str, Any]) -> Any:
        return await self.api.put(self.user_url(id), data)

    async def delete(self, id: str) -> Any:
        return await self.api.delete(self.user_url(id))

    async def activate(self, id: str) -> Any:
        return await self.api.patch(self.user_url(id, "activate"))

    async def suspend(self, id: str) -> Any:
        return await self.api.patch(self.user_url(id, "suspend"))

    async def set_role(self, id: str, role: str) -> Any:
        return await self.api.patch(self.user_url(id, "role"), {"role": role})

    async def bulk_activate(self, user_ids: List[str]) -> Any:
        return await self.api.patch(self.url("bulk-activate"), {"userIds": user_ids})

    async def bulk_suspend(self, user_ids: List[str]) -> Any:
        return await self.api.patch(self.url("bulk-suspend"), {"userIds": user_ids})

    async def bulk_set_role(self, user_ids: List[str], role: str) -> Any:
        return await self.api.patch(self.url("bulk-role"), {"userIds": user_ids, "role": role})

    async def send_email(self, user_ids: List[str], subject: str, message: str) -> Any:
        return await self.api.post(
            self.url("send-email"),
            {"userIds": user_ids, "subject": subject, "message": message},
        )


class PlatformAPI:
    """
    All admin resources in one place.

    Usage:
        platform = PlatformAPI(ApiClient(manager))
        await platform.categories.create({"name": "SSC", ...})
    """

    def __init__(self, api: ApiClient):
        auth_base = api.settings.AUTH_API_URL
        self.api = api
        self.categories = ResourceClient(api, "categories")
        self.test_series = TestSeriesClient(api, "test-series")
        self.tests = TestsClient(api, "tests")
        self.live_tests = LiveTestsClient(api, "live-tests")
        self.daily_tests = ResourceClient(api, "daily-tests")
        self.questions = ResourceClient(api, "questions")
        self.current_affairs = CurrentAffairsClient(api, "current-affairs")
        self.notifications = NotificationsClient(api, "admin/notifications", auth_base)
        self.users = UsersClient(api, "admin/users", auth_base)
