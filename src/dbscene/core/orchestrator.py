"""Scene creation and update workflows."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from ..common.exceptions import BatchError, DbsceneError, SceneCreationError
from .cache import PositionCache, TrackedObject
from .config import SystemConfig, check_mapping
from .console import ConsoleQueries, CueDescriptor
from .correlator import Endpoint, RequestCorrelator
from .router import ReplyEvent
from .protocol import (
    CUSTOM_MESSAGE_TYPE,
    SCENE_GROUP_NAME,
    coordinate_address,
    format_cue_name,
    format_custom_string,
    is_scene_group,
    parse_coordinate_address,
    parse_custom_string,
    split_coordinates,
)

logger = logging.getLogger(__name__)

CollapseCallable = Callable[[str], Awaitable[object]]


@dataclass
class SceneResult:
    """Outcome of a scene creation"""

    group_id: str
    mapping: int
    cue_ids: Dict[int, str] = field(default_factory=dict)
    failures: Dict[int, Exception] = field(default_factory=dict)


@dataclass
class UpdateReport:
    """Outcome of a scene update"""

    updated: List[str] = field(default_factory=list)
    failures: Dict[str, Exception] = field(default_factory=dict)


class SceneOrchestrator:
    """Builds dbscene group cues in QLab and refreshes them from the DS100"""

    def __init__(
        self,
        config: SystemConfig,
        cache: PositionCache,
        correlator: RequestCorrelator,
        device: Endpoint,
        console: Endpoint,
        collapse: Optional[CollapseCallable] = None,
    ):
        self.config = config
        self.cache = cache
        self.correlator = correlator
        self.device = device
        self.console = console
        self.queries = ConsoleQueries(correlator, console)
        self.collapse = collapse

    # Positions ----------------------------------------------------------

    async def refresh_position(self, number: int, mapping: Optional[int] = None) -> TrackedObject:
        """Query the DS100 until it reports the object's position"""
        mapping = check_mapping(
            self.config.device.default_mapping if mapping is None else mapping
        )
        obj = self.cache.lookup(number)
        address = coordinate_address(mapping, obj.number)
        reply = await self.correlator.poll(self.device, address)
        return self._reported_position(self.cache.lookup(obj.number), address, reply)

    async def refresh_positions(self, mapping: Optional[int] = None) -> List[TrackedObject]:
        """Query the position of every cached object"""
        mapping = check_mapping(
            self.config.device.default_mapping if mapping is None else mapping
        )
        objects = self.cache.list_objects()
        addresses = [coordinate_address(mapping, obj.number) for obj in objects]
        try:
            replies = await self.correlator.poll_all(self.device, addresses)
        except BatchError as e:
            logger.error(f"dbscene: {len(e.failures)} position queries were rejected")
            raise
        logger.info("dbscene: Position queries for all cache objects have been resolved")
        return [
            self._reported_position(obj, address, reply)
            for obj, address, reply in zip(objects, addresses, replies)
        ]

    @staticmethod
    def _reported_position(obj: TrackedObject, address: str, reply: ReplyEvent) -> TrackedObject:
        """Object with the coordinates carried by the reply to ``address``

        The cache keeps one position per object across all mappings, so it may
        already hold a later report by the time the waiting coroutine resumes.
        """
        coords = parse_coordinate_address(address)
        values = reply.data if isinstance(reply.data, (list, tuple)) else []
        if coords is None:
            return obj
        x, y = split_coordinates(coords, values)
        return replace(
            obj,
            x=obj.x if x is None else x,
            y=obj.y if y is None else y,
        )

    # Create -------------------------------------------------------------

    async def create_scene(self, mapping: Optional[int] = None) -> SceneResult:
        """Capture current positions as a new group of network cues"""
        mapping = check_mapping(
            self.config.device.default_mapping if mapping is None else mapping
        )

        # Step 1 - current positions; a scene is never built from stale data
        try:
            objects = await self.refresh_positions(mapping)
        except BatchError as e:
            raise SceneCreationError(f"Could not read object positions: {e}") from e

        # Step 2 - group cue
        try:
            group_id = await self.queries.new_cue("group")
            self.console.send(f"/cue_id/{group_id}/name", [SCENE_GROUP_NAME])
        except DbsceneError as e:
            raise SceneCreationError(f"Could not create the group cue: {e}") from e

        # Step 3 - one network cue per object, independently
        result = SceneResult(group_id=group_id, mapping=mapping)
        outcomes = await asyncio.gather(
            *(self._create_position_cue(obj, mapping, group_id) for obj in objects),
            return_exceptions=True,
        )
        for obj, outcome in zip(objects, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"dbscene: could not create cue for object {obj.number}: {outcome}")
                result.failures[obj.number] = outcome
            else:
                result.cue_ids[obj.number] = outcome

        # Step 4 - best effort only
        await self._select_and_collapse(group_id)

        logger.info(
            f"dbscene: created scene {group_id} on mapping {mapping} "
            f"with {len(result.cue_ids)} of {len(objects)} cues"
        )
        return result

    async def _create_position_cue(self, obj: TrackedObject, mapping: int, group_id: str) -> str:
        cue_id = await self.queries.new_cue("network")
        prefix = f"/cue_id/{cue_id}"
        self.console.send(f"{prefix}/patch", [self.config.console.network_patch])
        self.console.send(f"{prefix}/messageType", [CUSTOM_MESSAGE_TYPE])
        self.console.send(f"{prefix}/customString", [format_custom_string(mapping, obj)])
        self.console.send(f"{prefix}/name", [format_cue_name(obj)])
        self.console.send(f"{prefix}/duration", [float(self.config.console.default_duration)])
        self.console.send(f"/move/{cue_id}", [-1, group_id])
        return cue_id

    async def _select_and_collapse(self, group_id: str) -> None:
        try:
            self.console.send(f"/select_id/{group_id}")
            if self.collapse is not None:
                await self.collapse(group_id)
        except Exception as e:
            logger.error(
                f"dbscene: An error has occurred while attempting to select and collapse {group_id}: {e}"
            )

    # Update -------------------------------------------------------------

    async def update_scenes(self, selection: Sequence[CueDescriptor]) -> UpdateReport:
        """Refresh the selected dbscene groups and position cues.

        Groups are only touched when their name carries the dbscene prefix;
        their direct Network children are updated. Network cues in the
        selection are updated directly, everything else is ignored. Failures
        are recorded per cue and never stop the remaining cues.
        """
        report = UpdateReport()
        groups = [cue for cue in selection if cue.is_group and is_scene_group(cue.name)]
        leaf_ids = [cue.unique_id for cue in selection if cue.is_network]

        children = await asyncio.gather(*(self._scene_children(group, report) for group in groups))
        for group_children in children:
            leaf_ids.extend(group_children)
        leaf_ids = list(dict.fromkeys(leaf_ids))

        outcomes = await asyncio.gather(
            *(self.update_position_cue(cue_id) for cue_id in leaf_ids),
            return_exceptions=True,
        )
        for cue_id, outcome in zip(leaf_ids, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"dbscene: could not update cue {cue_id}: {outcome}")
                report.failures[cue_id] = outcome
            else:
                report.updated.append(cue_id)

        logger.info(
            f"dbscene: updated {len(report.updated)} cues, {len(report.failures)} failed"
        )
        return report

    async def _scene_children(self, group: CueDescriptor, report: UpdateReport) -> List[str]:
        try:
            children = await self.queries.fetch_children(group.unique_id)
        except DbsceneError as e:
            logger.error(f"dbscene: could not read children of {group.unique_id}: {e}")
            report.failures[group.unique_id] = e
            return []
        return [child.unique_id for child in children if child.is_network]

    async def update_position_cue(self, cue_id: str) -> TrackedObject:
        """Rewrite one position cue with the object's current coordinates"""
        custom = await self.queries.fetch_custom_string(cue_id)
        coords = parse_custom_string(custom)
        obj = await self.refresh_position(coords.number, coords.mapping)
        self.console.send(
            f"/cue_id/{cue_id}/customString", [format_custom_string(coords.mapping, obj)]
        )
        self.console.send(f"/cue_id/{cue_id}/name", [format_cue_name(obj)])
        return obj
