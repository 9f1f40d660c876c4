import socket
import threading
import time

import pytest

from wsg50.communicator import Communicator
from wsg50.observers import ResponseObserver
from wsg50.protocol import build_frame
from wsg50.status import Command, Message, Status


def response_frame(msg_id, status=Status.SUCCESS, payload=b""):
    return build_frame(Message(msg_id, int(status).to_bytes(2, "little") + payload))


DISCONNECT_FRAME = build_frame(Message(Command.DISCONNECT))
DISCONNECT_RESPONSE = response_frame(Command.DISCONNECT)


class Recorder(ResponseObserver):
    def __init__(self):
        self.responses = []
        self.received = threading.Event()

    def update(self, response):
        self.responses.append(response)
        self.received.set()


class FakeGripper:
    def __init__(self, reply_disconnect=True):
        self.listener = socket.create_server(("127.0.0.1", 0))
        self.port = self.listener.getsockname()[1]
        self.reply_disconnect = reply_disconnect
        self.received = bytearray()
        self.lock = threading.Lock()
        self.conn = None
        self.accepted = threading.Event()
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        try:
            conn, _ = self.listener.accept()
        except OSError:
            return
        self.conn = conn
        self.accepted.set()
        replied = False
        with conn:
            while True:
                try:
                    chunk = conn.recv(512)
                except OSError:
                    break
                if not chunk:
                    break
                with self.lock:
                    self.received.extend(chunk)
                    seen = bytes(self.received)
                if self.reply_disconnect and not replied and DISCONNECT_FRAME in seen:
                    replied = True
                    conn.sendall(DISCONNECT_RESPONSE)

    def data(self):
        with self.lock:
            return bytes(self.received)

    def close(self):
        self.listener.close()
        self.thread.join(2)


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def gripper():
    server = FakeGripper()
    yield server
    server.close()


def test_handle_data_dispatches_response_to_observer():
    comm = Communicator("127.0.0.1", 1)
    recorder = Recorder()
    comm.attach(recorder)
    payload = b"\x00\x00\x5c\x42"
    responses = comm.handle_data(response_frame(Command.GET_WIDTH, payload=payload))
    assert [r.id for r in responses] == [Command.GET_WIDTH]
    assert len(recorder.responses) == 1
    assert recorder.responses[0].data == payload
    assert recorder.responses[0].status == Status.SUCCESS


def test_handle_data_splits_concatenated_frames_in_order():
    comm = Communicator("127.0.0.1", 1)
    recorder = Recorder()
    comm.attach(recorder)
    data = response_frame(Command.GET_SPEED, payload=b"\x01\x02\x03\x04") + response_frame(
        Command.HOMING, Status.CMD_PENDING
    )
    comm.handle_data(data)
    assert [r.id for r in recorder.responses] == [Command.GET_SPEED, Command.HOMING]
    assert recorder.responses[1].status == Status.CMD_PENDING


def test_handle_data_joins_split_frame():
    comm = Communicator("127.0.0.1", 1)
    recorder = Recorder()
    comm.attach(recorder)
    frame = response_frame(Command.GET_FORCE, payload=b"\x10\x20\x30\x40")
    comm.handle_data(frame[:5])
    assert recorder.responses == []
    comm.handle_data(frame[5:])
    assert [r.data for r in recorder.responses] == [b"\x10\x20\x30\x40"]


def test_disconnect_response_is_not_forwarded():
    comm = Communicator("127.0.0.1", 1)
    recorder = Recorder()
    comm.attach(recorder)
    responses = comm.handle_data(DISCONNECT_RESPONSE)
    assert [r.id for r in responses] == [Command.DISCONNECT]
    assert recorder.responses == []


def test_push_message_without_connection_raises():
    comm = Communicator("127.0.0.1", 1)
    with pytest.raises(ConnectionError):
        comm.push_message(Message(Command.STOP))


def test_stop_without_connection_returns_false():
    comm = Communicator("127.0.0.1", 1)
    assert comm.stop() is False


def test_start_fails_when_nothing_listens():
    probe = socket.create_server(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    comm = Communicator("127.0.0.1", port, connect_timeout=1.0)
    with pytest.raises(OSError):
        comm.start()
    assert comm.running is False


def test_push_message_writes_frame_to_socket(gripper):
    comm = Communicator("127.0.0.1", gripper.port)
    comm.start()
    try:
        message = Message(Command.LOOP, b"\xff" * 8)
        comm.push_message(message)
        assert comm.running is True
        expected = build_frame(message)
        assert expected[:4] == b"\xaa\xaa\xaa\x06"
        assert len(expected) == 3 + 3 + 8 + 2
        assert wait_for(lambda: expected in gripper.data())
    finally:
        comm.stop()


def test_stop_sends_disconnect_and_closes(gripper):
    comm = Communicator("127.0.0.1", gripper.port)
    comm.start()
    assert comm.running is True
    assert comm.stop() is True
    assert DISCONNECT_FRAME in gripper.data()
    assert comm.running is False
    with pytest.raises(ConnectionError):
        comm.push_message(Message(Command.STOP))


def test_responses_from_gripper_reach_observer(gripper):
    recorder = Recorder()
    comm = Communicator("127.0.0.1", gripper.port)
    comm.attach(recorder)
    with comm:
        assert gripper.accepted.wait(2)
        gripper.conn.sendall(response_frame(Command.GRASP_PART, Status.ALREADY_RUNNING))
        assert recorder.received.wait(2)
    assert recorder.responses[0].id == Command.GRASP_PART
    assert recorder.responses[0].status == Status.ALREADY_RUNNING


def test_stop_without_disconnect_reply_still_closes():
    server = FakeGripper(reply_disconnect=False)
    try:
        comm = Communicator("127.0.0.1", server.port, stop_timeout=0.2)
        comm.start()
        assert comm.stop() is True
        assert comm.running is False
        assert comm.stop() is False
    finally:
        server.close()