"""
Connectivity Monitor - online/offline transitions

The host (browser bridge, desktop shell, or the built-in health poller)
reports connectivity through set_online(). Each offline -> online
transition schedules every reconnect listener exactly once; going
offline only flips the flag.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Set

import httpx

from examdash.config import Settings
from examdash.logging_config import logger


Listener = Callable[[], Awaitable[None]]


class ConnectivityMonitor:
    """
    Tracks whether the backend is reachable.

    Usage:
        monitor = ConnectivityMonitor(settings, client)
        monitor.on_reconnect(engine.request_sync)
        await monitor.start()      # optional health polling
        monitor.set_online(False)  # host events
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        initial_state: bool = True,
    ):
        self.settings = settings
        self.http_client = http_client
        self._online = initial_state
        self._reconnect_listeners: List[Listener] = []
        self._disconnect_listeners: List[Listener] = []
        self._tasks: Set[asyncio.Task] = set()
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def is_online(self) -> bool:
        return self._online

    def on_reconnect(self, listener: Listener) -> None:
        self._reconnect_listeners.append(listener)

    def on_disconnect(self, listener: Listener) -> None:
        self._disconnect_listeners.append(listener)

    def set_online(self, online: bool) -> bool:
        """
        Record a connectivity event.

        Returns True when the event changed the state. Listeners run as
        tasks on the running loop so the caller is never blocked by a drain;
        with listeners registered this must be called from inside the loop,
        otherwise RuntimeError is raised and the state is left unchanged.
        """
        if online == self._online:
            return False

        listeners = self._reconnect_listeners if online else self._disconnect_listeners
        loop = asyncio.get_running_loop() if listeners else None

        self._online = online
        if online:
            logger.info("Connection restored")
        else:
            logger.warning("Connection lost, mutations will be queued")

        for listener in listeners:
            task = loop.create_task(self._run_listener(listener))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return True

    async def _run_listener(self, listener: Listener) -> None:
        try:
            await listener()
        except Exception as e:
            logger.log_error_with_context(e, "connectivity listener")

    async def wait_idle(self) -> None:
        """Wait until every scheduled listener has finished"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def check_connection(self) -> bool:
        """Check if the backend health endpoint is reachable"""
        try:
            if self.http_client is not None:
                response = await self.http_client.get(
                    self.settings.health_url, timeout=5.0
                )
            else:
                async with httpx.AsyncClient(timeout=5.0) as client:
                    response = await client.get(self.settings.health_url)
            return response.status_code < 500
        except httpx.HTTPError:
            return False

    async def probe(self) -> bool:
        """Check the backend once and feed the result into set_online()"""
        online = await self.check_connection()
        self.set_online(online)
        return online

    async def start(self) -> None:
        """Start polling the health endpoint in the background"""
        if self._poll_task is not None:
            return

        async def poll_loop():
            while True:
                try:
                    await self.probe()
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.log_error_with_context(e, "connectivity poll")
                try:
                    await asyncio.sleep(self.settings.CONNECTIVITY_POLL_INTERVAL)
                except asyncio.CancelledError:
                    break

        self._poll_task = asyncio.create_task(poll_loop())

    async def stop(self) -> None:
        """Stop polling and wait for running listeners"""
        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        await self.wait_idle()
