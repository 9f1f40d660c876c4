import logging

import pytest

from wsg50.status import (
    Command,
    GraspingState,
    Message,
    Response,
    Status,
    SystemState,
    log_status,
)


@pytest.mark.parametrize(
    "value, command",
    [
        (0x06, Command.LOOP),
        (0x07, Command.DISCONNECT),
        (0x20, Command.HOMING),
        (0x43, Command.GET_WIDTH),
    ],
)
def test_command_identifiers_match_protocol(value, command):
    assert Command(value) is command
    assert int(command) == value


def test_status_values_follow_enumeration():
    assert Status(0) is Status.SUCCESS
    assert Status(30) is Status.FILE_EXISTS
    assert [Status(code) for code in range(31)] == list(Status)


def test_grasping_state_order():
    assert [g.value for g in GraspingState] == list(range(8))
    assert GraspingState(4) is GraspingState.HOLDING


def test_message_length_follows_payload():
    msg = Message(Command.GRASP_PART, bytearray(b"\x01\x02\x03"))
    assert msg.length == 3
    assert msg.data == b"\x01\x02\x03"
    assert Message(Command.STOP).length == 0


@pytest.mark.parametrize("bad_id", [-1, 256])
def test_message_rejects_bad_id(bad_id):
    with pytest.raises(ValueError):
        Message(bad_id)


def test_message_rejects_oversized_payload():
    with pytest.raises(ValueError):
        Message(Command.LOOP, bytes(0x10000))


def test_response_coerces_status():
    resp = Response(0x20, 26, b"")
    assert resp.status is Status.CMD_PENDING
    assert not resp.ok


def test_response_keeps_unknown_status():
    resp = Response(0x20, 999)
    assert resp.status == 999
    assert not isinstance(resp.status, Status)


def test_response_ok_and_length():
    resp = Response(0x43, Status.SUCCESS, b"abcd")
    assert resp.ok
    assert resp.length == 4


def test_system_state_defaults_all_false():
    state = SystemState()
    assert not any(vars(state).values())
    assert SystemState(moving=True).moving is True


def test_log_status_success_is_silent(caplog):
    with caplog.at_level(logging.DEBUG):
        assert log_status(Status.SUCCESS) is None
    assert caplog.records == []


def test_log_status_error_level(caplog):
    with caplog.at_level(logging.DEBUG):
        text = log_status(Status.AXIS_BLOCKED)
    assert text == "Received command error code: E_AXIS_BLOCKED"
    assert caplog.records[-1].levelno == logging.ERROR


@pytest.mark.parametrize("status", [Status.CMD_PENDING, Status.ALREADY_OPEN])
def test_log_status_warning_level(caplog, status):
    with caplog.at_level(logging.DEBUG):
        text = log_status(status)
    assert text.endswith(status.name)
    assert caplog.records[-1].levelno == logging.WARNING


def test_log_status_unknown_code_is_silent():
    assert log_status(200) is None