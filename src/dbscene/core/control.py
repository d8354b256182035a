import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from ..common.exceptions import DbsceneError
from ..net.scripting import ScriptingBridge
from ..net.transport import OscEndpoint
from .cache import CacheObserver, PositionCache, TrackedObject
from .config import SystemConfig
from .correlator import Endpoint, RequestCorrelator
from .orchestrator import CollapseCallable, SceneOrchestrator, SceneResult, UpdateReport
from .router import EventType, MessageRouter, SceneCommand

logger = logging.getLogger(__name__)


class BridgeController:
    """Owns one bridge session between a DS100 and a QLab workspace"""

    def __init__(
        self,
        config: SystemConfig,
        device: Optional[Endpoint] = None,
        console: Optional[Endpoint] = None,
        collapse: Optional[CollapseCallable] = None,
        correlator: Optional[RequestCorrelator] = None,
    ):
        """Initialize the bridge controller

        Endpoints and the collapse capability default to the real UDP sockets
        and the AppleScript bridge; tests pass fakes instead.
        """
        self.config = config
        self.cache = PositionCache(config.objects)
        self.router = MessageRouter(self.cache)

        self.device = device or OscEndpoint(
            "device",
            config.device.address,
            config.device.port,
            config.device.reply_port,
            on_packet=self.router.handle_device_packet,
        )
        self.console = console or OscEndpoint(
            "console",
            config.console.address,
            config.console.port,
            config.console.reply_port,
            on_packet=self.router.handle_console_packet,
        )

        self.correlator = correlator or RequestCorrelator()
        self.router.subscribe(EventType.REPLY, self.correlator.dispatch)
        self.router.subscribe(EventType.SCENE_CONTROL, self._on_scene_command)

        if collapse is None:
            collapse = ScriptingBridge().collapse
        self.orchestrator = SceneOrchestrator(
            config, self.cache, self.correlator, self.device, self.console, collapse
        )

        self._tasks: Set[asyncio.Task] = set()
        self._running = False
        logger.debug(f"Objects: {self.cache.list_objects()}")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def listen_port(self) -> int:
        """Port scene control messages are received on"""
        return self.config.device.reply_port

    async def start(self) -> None:
        """Open both endpoints"""
        if self._running:
            return
        logger.info("Starting dbscene bridge")
        try:
            for endpoint in (self.device, self.console):
                if isinstance(endpoint, OscEndpoint):
                    await endpoint.start()
        except Exception as e:
            logger.error(f"Failed to start bridge: {e}")
            await self.stop()
            raise
        self._running = True
        logger.info("dbscene bridge started")

    async def stop(self) -> None:
        """Cancel running workflows and close both endpoints"""
        self._running = False
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        for endpoint in (self.device, self.console):
            if isinstance(endpoint, OscEndpoint):
                endpoint.stop()
        logger.info("dbscene bridge stopped")

    # Scene control --------------------------------------------------

    def _on_scene_command(self, command: SceneCommand) -> None:
        """Run /dbscene/create and /dbscene/update in the background"""
        if command.action == "create":
            mapping = command.args[0] if command.args else None
            coro = self._run_safely("create", self.create_scene(mapping))
        else:
            coro = self._run_safely("update", self.update_selected())
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_safely(self, name: str, coro) -> None:
        try:
            await coro
        except DbsceneError as e:
            logger.error(f"dbscene: scene {name} failed: {e}")
        except Exception as e:
            logger.exception(f"dbscene: unexpected error during scene {name}: {e}")

    async def create_scene(self, mapping: Optional[int] = None) -> SceneResult:
        return await self.orchestrator.create_scene(mapping)

    async def update_selected(self) -> UpdateReport:
        """Update whatever is currently selected in QLab"""
        try:
            selection = await self.orchestrator.queries.fetch_selection()
        except DbsceneError as e:
            logger.error(f"dbscene: could not read the QLab selection: {e}")
            return UpdateReport()
        return await self.orchestrator.update_scenes(selection)

    # Cache management -----------------------------------------------

    def subscribe(self, observer: CacheObserver) -> None:
        self.cache.subscribe(observer)

    def unsubscribe(self, observer: CacheObserver) -> None:
        self.cache.unsubscribe(observer)

    def get_objects(self) -> List[TrackedObject]:
        return self.cache.list_objects()

    def get_object(self, number: int) -> TrackedObject:
        return self.cache.lookup(number)

    async def _refresh_quietly(self, number: int) -> TrackedObject:
        try:
            return await self.orchestrator.refresh_position(number)
        except DbsceneError as e:
            logger.error(f"Position query for object {number} failed: {e}")
            return self.cache.lookup(number)

    async def add_object(self, number: int, name: Optional[str] = None) -> TrackedObject:
        """Add an object, then try to read its position"""
        obj = self.cache.add(number, name)
        return await self._refresh_quietly(obj.number)

    async def rename_object(self, number: int, name: Optional[str]) -> TrackedObject:
        """Rename an object, then try to refresh its position"""
        obj = self.cache.rename(number, name)
        return await self._refresh_quietly(obj.number)

    def remove_object(self, number: int) -> TrackedObject:
        return self.cache.remove(number)

    def get_state(self) -> Dict[str, Any]:
        """Get current bridge state"""
        return {
            "is_running": self._running,
            "listen_port": self.listen_port,
            "object_count": len(self.cache),
            "pending_requests": self.correlator.pending_count,
            "active_workflows": len(self._tasks),
        }
