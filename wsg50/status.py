"""Status codes, command identifiers and message types of the gripper protocol."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum

logger = logging.getLogger(__name__)


class Status(IntEnum):
    """Status codes reported by the gripper in every response."""

    SUCCESS = 0
    NOT_AVAILABLE = 1
    NO_SENSOR = 2
    NOT_INITIALIZED = 3
    ALREADY_RUNNING = 4
    FEATURE_NOT_SUPPORTED = 5
    INCONSISTENT_DATA = 6
    TIMEOUT = 7
    READ_ERROR = 8
    WRITE_ERROR = 9
    INSUFFICIENT_RESOURCES = 10
    CHECKSUM_ERROR = 11
    NO_PARAM_EXPECTED = 12
    NOT_ENOUGH_PARAMS = 13
    CMD_UNKNOWN = 14
    CMD_FORMAT_ERROR = 15
    ACCESS_DENIED = 16
    ALREADY_OPEN = 17
    CMD_FAILED = 18
    CMD_ABORTED = 19
    INVALID_HANDLE = 20
    NOT_FOUND = 21
    NOT_OPEN = 22
    IO_ERROR = 23
    INVALID_PARAMETER = 24
    INDEX_OUT_OF_BOUNDS = 25
    CMD_PENDING = 26
    OVERRUN = 27
    RANGE_ERROR = 28
    AXIS_BLOCKED = 29
    FILE_EXISTS = 30


class Command(IntEnum):
    """Command identifiers understood by the gripper."""

    # connection manager
    LOOP = 0x06
    DISCONNECT = 0x07
    # motion control
    HOMING = 0x20
    PREPOSITION_FINGERS = 0x21
    STOP = 0x22
    FAST_STOP = 0x23
    ACK_FAST_STOP = 0x24
    GRASP_PART = 0x25
    RELEASE_PART = 0x26
    # motion configuration
    SET_ACCELERATION = 0x30
    GET_ACCELERATION = 0x31
    SET_FORCE_LIMIT = 0x32
    GET_FORCE_LIMIT = 0x33
    SET_SOFT_LIMITS = 0x34
    GET_SOFT_LIMITS = 0x35
    CLEAR_SOFT_LIMITS = 0x36
    TARE_FORCE_SENSOR = 0x38
    # system state
    GET_SYSTEM_STATE = 0x40
    GET_GRASPING_STATE = 0x41
    GET_GRASPING_STATS = 0x42
    GET_WIDTH = 0x43
    GET_SPEED = 0x44
    GET_FORCE = 0x45
    GET_TEMPERATURE = 0x46
    # system configuration
    GET_SYSTEM_INFO = 0x50
    SET_DEVICE_TAG = 0x51
    GET_DEVICE_TAG = 0x52
    GET_SYSTEM_LIMITS = 0x53
    # finger interface
    GET_FINGER_INFO = 0x60
    GET_FINGER_FLAGS = 0x61
    FINGER_POWER_CONTROL = 0x62
    GET_FINGER_DATA = 0x63


class GraspingState(IntEnum):
    """Grasping states reported by the gripper."""

    IDLE = 0
    GRASPING = 1
    NO_PART_FOUND = 2
    PART_LOST = 3
    HOLDING = 4
    RELEASING = 5
    POSITIONING = 6
    ERROR = 7


def _coerce_status(code: int) -> Status | int:
    try:
        return Status(code)
    except ValueError:
        return code


@dataclass
class Message:
    """A command sent to the gripper: an identifier and its payload."""

    id: int
    data: bytes = b""

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        if not 0 <= int(self.id) <= 0xFF:
            raise ValueError(f"message id out of range: {self.id}")
        if len(self.data) > 0xFFFF:
            raise ValueError(f"payload too long: {len(self.data)} bytes")

    @property
    def length(self) -> int:
        return len(self.data)


@dataclass
class Response:
    """A response from the gripper: identifier, status code and payload."""

    id: int
    status: Status | int
    data: bytes = b""

    def __post_init__(self) -> None:
        self.data = bytes(self.data)
        self.status = _coerce_status(int(self.status))

    @property
    def length(self) -> int:
        return len(self.data)

    @property
    def ok(self) -> bool:
        return self.status == Status.SUCCESS


@dataclass(frozen=True)
class SystemState:
    """System state flags of the gripper."""

    script_failure: bool = False
    script_running: bool = False
    cmd_failure: bool = False
    finger_fault: bool = False
    curr_fault: bool = False
    power_fault: bool = False
    temp_fault: bool = False
    temp_warning: bool = False
    fast_stop: bool = False
    force_control_mode: bool = False
    target_pos_reached: bool = False
    axis_stopped: bool = False
    soft_limit_plus: bool = False
    soft_limit_minus: bool = False
    blocked_plus: bool = False
    blocked_minus: bool = False
    moving: bool = False
    referenced: bool = False


_WARNING_STATUSES = frozenset({Status.ALREADY_OPEN, Status.CMD_PENDING})


def log_status(status: Status | int) -> str | None:
    """Log a non-success status code and return the logged text.

    Success and unknown codes are not logged and give None.
    """
    code = _coerce_status(int(status))
    if not isinstance(code, Status) or code is Status.SUCCESS:
        return None
    text = f"Received command error code: E_{code.name}"
    if code in _WARNING_STATUSES:
        logger.warning(text)
    else:
        logger.error(text)
    return text