"""Builders for the command messages sent to the gripper."""

from __future__ import annotations

import logging
import struct

from .state import GripperLimits
from .status import Command, Message

logger = logging.getLogger(__name__)

LIMITS = GripperLimits()
LOOP_TEST_PAYLOAD = bytes([0xFF]) * 8
ACK_PAYLOAD = b"ack"

STOP_ON_BLOCK_FLAG = 0x04
AUTO_UPDATE_FLAG = 1 << 0
UPDATE_ON_CHANGE_FLAG = 1 << 1

_FLOAT = struct.Struct("<f")
_TWO_FLOATS = struct.Struct("<ff")
_UPDATE_REQUEST = struct.Struct("<Bh")


def clamp(value: float, low: float, high: float) -> float:
    """Limit ``value`` to the range from ``low`` to ``high``."""
    if value < low:
        return low
    if value > high:
        return high
    return value


def simple_message(command: Command | int) -> Message:
    """A command without payload."""
    return Message(int(command))


def loop_message(payload: bytes = LOOP_TEST_PAYLOAD) -> Message:
    """A loop-back message; the gripper echoes the payload."""
    return Message(Command.LOOP, payload)


def homing_message(direction: int = 0) -> Message:
    """Homing: 1 positive direction, 2 negative, anything else the default."""
    code = direction if direction in (1, 2) else 0
    return Message(Command.HOMING, bytes([code]))


def preposition_message(stop_on_block: bool, width: float, speed: float) -> Message:
    """Move the fingers to an absolute opening width at the given speed."""
    flags = STOP_ON_BLOCK_FLAG if stop_on_block else 0x00
    return Message(
        Command.PREPOSITION_FINGERS, bytes([flags]) + _TWO_FLOATS.pack(width, speed)
    )


def _width_and_speed(width: float, speed: float) -> bytes:
    width = clamp(width, LIMITS.min_width, LIMITS.max_width)
    speed = clamp(speed, LIMITS.min_speed, LIMITS.max_speed)
    return _TWO_FLOATS.pack(width, speed)


def grasp_message(width: float, speed: float) -> Message:
    """Grasp a part of nominal ``width`` (mm) at ``speed`` (mm/s), both clamped."""
    return Message(Command.GRASP_PART, _width_and_speed(width, speed))


def release_message(width: float, speed: float) -> Message:
    """Release a part, opening to ``width`` (mm) at ``speed`` (mm/s), both clamped."""
    return Message(Command.RELEASE_PART, _width_and_speed(width, speed))


def acceleration_message(acceleration: float) -> Message:
    """Set the acceleration (mm/s^2), clamped to the gripper's range."""
    value = clamp(acceleration, LIMITS.min_acceleration, LIMITS.max_acceleration)
    return Message(Command.SET_ACCELERATION, _FLOAT.pack(value))


def force_limit_message(force_limit: float) -> Message:
    """Set the grasping force limit (N), clamped to the gripper's range."""
    value = clamp(force_limit, LIMITS.min_force_limit, LIMITS.max_force_limit)
    return Message(Command.SET_FORCE_LIMIT, _FLOAT.pack(value))


def soft_limits_message(minus_limit: float, plus_limit: float) -> Message:
    """Set the soft limits for the minus and plus direction (mm).

    Raises ValueError if the minus limit is at or beyond the maximum width.
    """
    minus_limit = max(minus_limit, LIMITS.min_width)
    plus_limit = min(plus_limit, LIMITS.max_width)
    if minus_limit >= LIMITS.max_width:
        raise ValueError(f"minus limit is too high: {minus_limit}")
    if plus_limit <= LIMITS.min_width:
        logger.error("plus limit is too low: %s", plus_limit)
    return Message(Command.SET_SOFT_LIMITS, _TWO_FLOATS.pack(minus_limit, plus_limit))


def ack_fast_stop_message() -> Message:
    """Acknowledge a fast stop so that the gripper accepts motion again."""
    return Message(Command.ACK_FAST_STOP, ACK_PAYLOAD)


def update_request_message(
    command: Command | int,
    update_on_change_only: bool,
    auto_update: bool,
    period_ms: int,
) -> Message:
    """Request a value once or as periodic automatic updates.

    Raises ValueError if the period does not fit a signed 16-bit value.
    """
    flags = 0
    if auto_update:
        flags |= AUTO_UPDATE_FLAG
    if update_on_change_only:
        flags |= UPDATE_ON_CHANGE_FLAG
    try:
        payload = _UPDATE_REQUEST.pack(flags, int(period_ms))
    except struct.error as exc:
        raise ValueError(f"update period out of range: {period_ms}") from exc
    return Message(int(command), payload)