from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.config import SystemDefaults


# Base Models
class BaseResponse(BaseModel):
    """Base response model"""

    status: str
    message: str


class ObjectModel(BaseModel):
    """A tracked En-Scene object"""

    number: int = Field(..., ge=SystemDefaults.MIN_OBJECT, le=SystemDefaults.MAX_OBJECT)
    name: Optional[str] = None
    x: float = 0.0
    y: float = 0.0


class ObjectCreateRequest(BaseModel):
    """Request to start tracking an object"""

    number: int = Field(..., ge=SystemDefaults.MIN_OBJECT, le=SystemDefaults.MAX_OBJECT)
    name: Optional[str] = None


class ObjectRenameRequest(BaseModel):
    name: Optional[str] = None


class SceneCreateRequest(BaseModel):
    """Request to capture a new scene"""

    mapping: Optional[int] = Field(
        None, ge=SystemDefaults.MIN_MAPPING, le=SystemDefaults.MAX_MAPPING
    )


class SceneCreateResponse(BaseResponse):
    group_id: str
    mapping: int
    cue_ids: Dict[int, str] = {}
    failures: Dict[int, str] = {}


class SceneUpdateResponse(BaseResponse):
    updated: List[str] = []
    failures: Dict[str, str] = {}


class BridgeState(BaseModel):
    """Current bridge state"""

    is_running: bool
    listen_port: int
    object_count: int
    pending_requests: int
    active_workflows: int
    objects: List[ObjectModel] = []
