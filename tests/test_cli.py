"""
Tests for the examdash command line
"""
import pytest
from rich.console import Console

from examdash.main import create_parser, dispatch
from examdash.offline.manager import OfflineManager


def recording_console() -> Console:
    return Console(record=True, width=140, force_terminal=False)


class TestParser:

    def test_cache_get_requires_key(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["cache-get"])

    def test_sync_force_flag(self):
        args = create_parser().parse_args(["sync", "--force"])

        assert args.command == "sync"
        assert args.force is True

    def test_api_url_option(self):
        args = create_parser().parse_args(["--api-url", "http://example.test/api", "pending"])

        assert args.api_url == "http://example.test/api"


class TestCommands:
    """Commands that only touch the local database"""

    @pytest.mark.asyncio
    async def test_pending_with_empty_queue(self, settings):
        console = recording_console()

        code = await dispatch(create_parser().parse_args(["pending"]), settings, console)

        assert code == 0
        assert "No pending actions" in console.export_text()

    @pytest.mark.asyncio
    async def test_pending_lists_queued_actions(self, settings):
        async with OfflineManager(settings) as manager:
            await manager.queue_offline_action("POST_/categories", "/categories", "POST", {"name": "SSC"})

        console = recording_console()
        code = await dispatch(create_parser().parse_args(["pending"]), settings, console)

        output = console.export_text()
        assert code == 0
        assert "POST" in output
        assert "/categories" in output

    @pytest.mark.asyncio
    async def test_cache_get_hit_and_miss(self, settings):
        async with OfflineManager(settings) as manager:
            await manager.store_offline_data("/categories", [{"name": "Banking"}])

        console = recording_console()
        hit = await dispatch(create_parser().parse_args(["cache-get", "/categories"]), settings, console)
        miss = await dispatch(create_parser().parse_args(["cache-get", "/tests"]), settings, console)

        output = console.export_text()
        assert hit == 0
        assert miss == 1
        assert "Banking" in output
        assert "Nothing cached for /tests" in output

    @pytest.mark.asyncio
    async def test_purge_reports_count(self, settings):
        async with OfflineManager(settings) as manager:
            await manager.store_offline_data("old", 1, 1)

        console = recording_console()
        code = await dispatch(create_parser().parse_args(["purge"]), settings, console)

        assert code == 0
        assert "Removed 1 cache entry" in console.export_text()

    @pytest.mark.asyncio
    async def test_cache_delete(self, settings):
        async with OfflineManager(settings) as manager:
            await manager.store_offline_data("/categories", [{"name": "Banking"}])

        console = recording_console()
        code = await dispatch(create_parser().parse_args(["cache-delete", "/categories"]), settings, console)

        assert code == 0
        async with OfflineManager(settings) as manager:
            assert await manager.get_offline_data("/categories") is None

    @pytest.mark.asyncio
    async def test_clear_queue_needs_confirmation(self, settings):
        async with OfflineManager(settings) as manager:
            await manager.queue_offline_action("POST_/categories", "/categories", "POST", {"name": "SSC"})

        console = recording_console()
        refused = await dispatch(create_parser().parse_args(["clear-queue"]), settings, console)
        cleared = await dispatch(create_parser().parse_args(["clear-queue", "--yes"]), settings, console)

        output = console.export_text()
        assert refused == 1
        assert cleared == 0
        assert "rerun with --yes" in output
        assert "Discarded 1 action(s)" in output
        async with OfflineManager(settings) as manager:
            assert await manager.get_pending_actions() == []
