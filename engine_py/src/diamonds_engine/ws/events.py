"""
WebSocket event models and validation.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..constants import SLOT_COUNT


class EventType(str, Enum):
    """Inbound event types."""
    JOIN = "join"
    SAVE_DRAFT = "save_draft"
    COMMIT_SLOTS = "commit_slots"
    REFRESH = "refresh"
    DETECTOR = "detector"
    STEAL = "steal"
    SKIP_STEAL = "skip_steal"
    REQUEST_STATE = "request_state"
    START = "start"
    STOP = "stop"
    PAUSE = "pause"
    RESUME = "resume"


class OutboundEventType(str, Enum):
    """Outbound event types."""
    JOIN_SUCCESS = "join_success"
    STATE_FULL = "state_full"
    STATE_PATCH = "state_patch"
    DETECTOR = "detector"
    ERROR = "error"


class ErrorCode(str, Enum):
    """Error codes for client events."""
    INVALID_EVENT = "INVALID_EVENT"
    NOT_JOINED = "NOT_JOINED"
    INVALID_ACTION = "INVALID_ACTION"
    INVALID_CARD = "INVALID_CARD"
    WRONG_PHASE = "WRONG_PHASE"
    NOT_PARTICIPANT = "NOT_PARTICIPANT"
    NOT_ACTIVE = "NOT_ACTIVE"
    OWNERSHIP = "OWNERSHIP"
    INVALID_SLOTS = "INVALID_SLOTS"
    ALREADY_LOCKED = "ALREADY_LOCKED"
    POWER_USED = "POWER_USED"
    NO_STANDARD_CARDS = "NO_STANDARD_CARDS"
    NO_OFFER = "NO_OFFER"
    ALREADY_PICKED = "ALREADY_PICKED"
    CARD_UNAVAILABLE = "CARD_UNAVAILABLE"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    NO_SESSION = "NO_SESSION"
    CONFLICT = "CONFLICT"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL = "INTERNAL"


# Inbound event models
class BaseEvent(BaseModel):
    """Base event model."""
    type: EventType


class JoinEvent(BaseEvent):
    """Join the session with an auth token."""
    type: EventType = EventType.JOIN
    token: str = Field(..., min_length=1, max_length=200)
    name: str = Field(..., min_length=1, max_length=30)
    is_bot: bool = False


class SaveDraftEvent(BaseEvent):
    """Save an unlocked slot arrangement. Slots hold card ids or null."""
    type: EventType = EventType.SAVE_DRAFT
    slots: List[Optional[str]] = Field(..., min_length=SLOT_COUNT, max_length=SLOT_COUNT)


class CommitSlotsEvent(BaseEvent):
    """Lock the slot array for this round."""
    type: EventType = EventType.COMMIT_SLOTS
    slots: List[Optional[str]] = Field(..., min_length=SLOT_COUNT, max_length=SLOT_COUNT)


class RefreshEvent(BaseEvent):
    type: EventType = EventType.REFRESH


class DetectorEvent(BaseEvent):
    type: EventType = EventType.DETECTOR


class StealEvent(BaseEvent):
    """Extract one offered card."""
    type: EventType = EventType.STEAL
    card_id: str = Field(..., min_length=1)


class SkipStealEvent(BaseEvent):
    type: EventType = EventType.SKIP_STEAL


class RequestStateEvent(BaseEvent):
    """Request full state event."""
    type: EventType = EventType.REQUEST_STATE


class StartEvent(BaseEvent):
    type: EventType = EventType.START


class StopEvent(BaseEvent):
    type: EventType = EventType.STOP


class PauseEvent(BaseEvent):
    type: EventType = EventType.PAUSE


class ResumeEvent(BaseEvent):
    type: EventType = EventType.RESUME


# Union type for all inbound events
InboundEvent = Union[
    JoinEvent,
    SaveDraftEvent,
    CommitSlotsEvent,
    RefreshEvent,
    DetectorEvent,
    StealEvent,
    SkipStealEvent,
    RequestStateEvent,
    StartEvent,
    StopEvent,
    PauseEvent,
    ResumeEvent,
]

EVENT_MAP = {
    EventType.JOIN: JoinEvent,
    EventType.SAVE_DRAFT: SaveDraftEvent,
    EventType.COMMIT_SLOTS: CommitSlotsEvent,
    EventType.REFRESH: RefreshEvent,
    EventType.DETECTOR: DetectorEvent,
    EventType.STEAL: StealEvent,
    EventType.SKIP_STEAL: SkipStealEvent,
    EventType.REQUEST_STATE: RequestStateEvent,
    EventType.START: StartEvent,
    EventType.STOP: StopEvent,
    EventType.PAUSE: PauseEvent,
    EventType.RESUME: ResumeEvent,
}


# Outbound event models
class JoinSuccessEvent(BaseModel):
    """Join success confirmation event."""
    type: OutboundEventType = OutboundEventType.JOIN_SUCCESS
    player_id: str
    role: str
    timestamp: float


class StateFullEvent(BaseModel):
    """Full state event."""
    type: OutboundEventType = OutboundEventType.STATE_FULL
    state: Dict[str, Any]
    timestamp: float


class PatchOperation(BaseModel):
    """JSON Patch operation."""
    op: str = Field(..., pattern="^(replace|add|remove)$")
    path: str
    value: Optional[Any] = None


class StatePatchEvent(BaseModel):
    """State patch event."""
    type: OutboundEventType = OutboundEventType.STATE_PATCH
    version: int
    ops: List[PatchOperation]
    timestamp: float


class DetectorResultEvent(BaseModel):
    """Hand sizes revealed by the detector power."""
    type: OutboundEventType = OutboundEventType.DETECTOR
    hand_sizes: Dict[str, int]
    timestamp: float


class ErrorEvent(BaseModel):
    """Error event."""
    type: OutboundEventType = OutboundEventType.ERROR
    code: ErrorCode
    message: str
    timestamp: float


OutboundEvent = Union[
    JoinSuccessEvent,
    StateFullEvent,
    StatePatchEvent,
    DetectorResultEvent,
    ErrorEvent,
]


def parse_inbound_event(data: Dict[str, Any]) -> InboundEvent:
    """
    Parse raw event data into appropriate event model.

    Args:
        data: Raw event data from WebSocket

    Returns:
        Parsed event model

    Raises:
        ValueError: If event type is invalid or data is malformed
    """
    if not isinstance(data, dict):
        raise ValueError("Event must be a JSON object")

    event_type = data.get("type")
    if not event_type:
        raise ValueError("Missing event type")

    try:
        event_type = EventType(event_type)
    except ValueError:
        raise ValueError(f"Invalid event type: {event_type}")

    try:
        return EVENT_MAP[event_type](**data)
    except ValidationError as e:
        raise ValueError(f"Invalid event data: {e}")


def to_error_code(code: Optional[str]) -> ErrorCode:
    """Map an engine error code onto the wire enum."""
    try:
        return ErrorCode(code)
    except ValueError:
        return ErrorCode.INTERNAL


def create_error_event(code: ErrorCode, message: str) -> ErrorEvent:
    """Create an error event."""
    return ErrorEvent(code=code, message=message, timestamp=time.time())


def create_join_success_event(player_id: str, role: str) -> JoinSuccessEvent:
    """Create a join success event."""
    return JoinSuccessEvent(player_id=player_id, role=role, timestamp=time.time())


def create_state_full_event(state: Dict[str, Any]) -> StateFullEvent:
    """Create a full state event."""
    return StateFullEvent(state=state, timestamp=time.time())


def create_state_patch_event(version: int, ops: List[Dict]) -> StatePatchEvent:
    """Create a state patch event."""
    return StatePatchEvent(
        version=version,
        ops=[PatchOperation(**op) for op in ops],
        timestamp=time.time()
    )


def create_detector_event(hand_sizes: Dict[str, int]) -> DetectorResultEvent:
    return DetectorResultEvent(hand_sizes=hand_sizes, timestamp=time.time())
