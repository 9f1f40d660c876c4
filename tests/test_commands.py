import struct

import pytest

from wsg50.commands import (
    ack_fast_stop_message,
    acceleration_message,
    clamp,
    force_limit_message,
    grasp_message,
    homing_message,
    loop_message,
    preposition_message,
    release_message,
    simple_message,
    soft_limits_message,
    update_request_message,
)
from wsg50.status import Command


def floats(data):
    return list(struct.unpack(f"<{len(data) // 4}f", data))


@pytest.mark.parametrize(
    "value, expected",
    [(5.0, 5.0), (-1.0, 0.0), (200.0, 110.0), (0.0, 0.0), (110.0, 110.0)],
)
def test_clamp(value, expected):
    assert clamp(value, 0.0, 110.0) == expected


def test_simple_message_has_no_payload():
    message = simple_message(Command.STOP)
    assert message.id == 0x22
    assert message.data == b""


def test_loop_message_default_payload():
    message = loop_message()
    assert message.id == 0x06
    assert message.data == bytes([0xFF]) * 8


def test_loop_message_custom_payload():
    assert loop_message(b"\x01\x02").data == b"\x01\x02"


@pytest.mark.parametrize("direction, code", [(0, 0x00), (1, 0x01), (2, 0x02), (7, 0x00)])
def test_homing_message(direction, code):
    message = homing_message(direction)
    assert message.id == 0x20
    assert message.data == bytes([code])


def test_preposition_message_layout():
    message = preposition_message(True, 55.0, 20.0)
    assert message.id == 0x21
    assert message.length == 9
    assert message.data[0] == 0x04
    assert floats(message.data[1:]) == [55.0, 20.0]


def test_preposition_message_without_stop_on_block_is_not_clamped():
    message = preposition_message(False, 500.0, 1.0)
    assert message.data[0] == 0x00
    assert floats(message.data[1:]) == [500.0, 1.0]


def test_grasp_message_values():
    message = grasp_message(25.0, 30.0)
    assert message.id == 0x25
    assert floats(message.data) == [25.0, 30.0]


def test_grasp_message_clamps():
    assert floats(grasp_message(-10.0, 1.0).data) == [0.0, 5.0]
    assert floats(grasp_message(500.0, 1000.0).data) == [110.0, 420.0]


def test_release_message_clamps():
    message = release_message(200.0, 2.0)
    assert message.id == 0x26
    assert floats(message.data) == [110.0, 5.0]


def test_acceleration_message():
    message = acceleration_message(700.0)
    assert message.id == 0x30
    assert floats(message.data) == [700.0]
    assert floats(acceleration_message(10.0).data) == [100.0]
    assert floats(acceleration_message(9000.0).data) == [5000.0]


def test_force_limit_message():
    message = force_limit_message(40.25)
    assert message.id == 0x32
    assert floats(message.data) == [40.25]
    assert floats(force_limit_message(1.0).data) == [5.0]
    assert floats(force_limit_message(100.0).data) == [80.0]


def test_soft_limits_message():
    message = soft_limits_message(10.0, 55.0)
    assert message.id == 0x34
    assert floats(message.data) == [10.0, 55.0]


def test_soft_limits_message_clamps_outer_bounds():
    assert floats(soft_limits_message(-5.0, 200.0).data) == [0.0, 110.0]


def test_soft_limits_message_rejects_high_minus_limit():
    with pytest.raises(ValueError):
        soft_limits_message(110.0, 110.0)


def test_ack_fast_stop_message():
    message = ack_fast_stop_message()
    assert message.id == 0x24
    assert message.data == bytes([0x61, 0x63, 0x6B])


@pytest.mark.parametrize(
    "on_change, auto, flags",
    [(False, False, 0), (False, True, 1), (True, False, 2), (True, True, 3)],
)
def test_update_request_flags(on_change, auto, flags):
    message = update_request_message(Command.GET_WIDTH, on_change, auto, 20)
    assert message.id == 0x43
    assert message.length == 3
    assert message.data[0] == flags


def test_update_request_period_round_trip():
    message = update_request_message(Command.GET_FORCE, False, True, 1000)
    assert int.from_bytes(message.data[1:3], "little", signed=True) == 1000


def test_update_request_period_out_of_range():
    with pytest.raises(ValueError):
        update_request_message(Command.GET_SPEED, False, False, 70000)