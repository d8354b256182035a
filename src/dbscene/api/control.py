import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from ..common.exceptions import (
    CommunicationError,
    DbsceneError,
    DuplicateObjectError,
    NotFoundError,
    ReplyTimeoutError,
    SceneCreationError,
    ValidationError,
)
from ..core.cache import TrackedObject
from ..core.control import BridgeController
from .models import (
    BaseResponse,
    BridgeState,
    ObjectCreateRequest,
    ObjectModel,
    ObjectRenameRequest,
    SceneCreateRequest,
    SceneCreateResponse,
    SceneUpdateResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["control"])


def get_controller(request: Request) -> BridgeController:
    """Dependency injection for the bridge controller"""
    controller = getattr(request.app.state, "controller", None)
    if not getattr(request.app.state, "startup_complete", False) or controller is None:
        raise HTTPException(
            status_code=503,
            detail="Bridge is still starting up. Please try again in a moment.",
        )
    return controller


def _http_error(error: DbsceneError) -> HTTPException:
    """Map bridge errors onto HTTP status codes"""
    if isinstance(error, DuplicateObjectError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, ValidationError):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (SceneCreationError, ReplyTimeoutError, CommunicationError)):
        return HTTPException(status_code=502, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


def _object_model(obj: TrackedObject) -> ObjectModel:
    return ObjectModel(number=obj.number, name=obj.name, x=obj.x, y=obj.y)


# Endpoints
@router.get("/status", response_model=BridgeState)
async def get_status(controller: BridgeController = Depends(get_controller)):
    """Get current bridge state"""
    state = controller.get_state()
    return BridgeState(
        **state, objects=[_object_model(obj) for obj in controller.get_objects()]
    )


@router.get("/objects", response_model=List[ObjectModel])
async def list_objects(controller: BridgeController = Depends(get_controller)):
    """List tracked objects in ascending order"""
    return [_object_model(obj) for obj in controller.get_objects()]


@router.get("/objects/{number}", response_model=ObjectModel)
async def get_object(number: int, controller: BridgeController = Depends(get_controller)):
    try:
        return _object_model(controller.get_object(number))
    except DbsceneError as e:
        raise _http_error(e)


@router.post("/objects", response_model=ObjectModel, status_code=201)
async def add_object(
    request: ObjectCreateRequest, controller: BridgeController = Depends(get_controller)
):
    """Start tracking an object and read its current position"""
    try:
        obj = await controller.add_object(request.number, request.name)
    except DbsceneError as e:
        raise _http_error(e)
    logger.info(f"Added object {obj.number} ({obj.display_name})")
    return _object_model(obj)


@router.put("/objects/{number}", response_model=ObjectModel)
async def rename_object(
    number: int,
    request: ObjectRenameRequest,
    controller: BridgeController = Depends(get_controller),
):
    """Rename an object and refresh its position"""
    try:
        obj = await controller.rename_object(number, request.name)
    except DbsceneError as e:
        raise _http_error(e)
    return _object_model(obj)


@router.delete("/objects/{number}", response_model=BaseResponse)
async def remove_object(number: int, controller: BridgeController = Depends(get_controller)):
    try:
        obj = controller.remove_object(number)
    except DbsceneError as e:
        raise _http_error(e)
    return BaseResponse(status="success", message=f"Removed object {obj.number}")


@router.post("/scenes", response_model=SceneCreateResponse)
async def create_scene(
    request: SceneCreateRequest, controller: BridgeController = Depends(get_controller)
):
    """Capture current positions as a new dbscene group"""
    try:
        result = await controller.create_scene(request.mapping)
    except DbsceneError as e:
        logger.error(f"Scene creation failed: {e}")
        raise _http_error(e)
    return SceneCreateResponse(
        status="success" if not result.failures else "partial",
        message=f"Created scene with {len(result.cue_ids)} cues",
        group_id=result.group_id,
        mapping=result.mapping,
        cue_ids=result.cue_ids,
        failures={num: str(error) for num, error in result.failures.items()},
    )


@router.post("/scenes/update", response_model=SceneUpdateResponse)
async def update_scenes(controller: BridgeController = Depends(get_controller)):
    """Refresh the dbscene cues selected in QLab"""
    report = await controller.update_selected()
    return SceneUpdateResponse(
        status="success" if not report.failures else "partial",
        message=f"Updated {len(report.updated)} cues",
        updated=report.updated,
        failures={cue_id: str(error) for cue_id, error in report.failures.items()},
    )
