"""TCP link to the gripper: sends command frames and dispatches responses."""

from __future__ import annotations

import logging
import socket
import threading

from .observers import ResponseObserver
from .protocol import FrameSplitter, build_frame, format_hex
from .status import Command, Message, Response

logger = logging.getLogger(__name__)

DEFAULT_HOST = "192.168.1.20"
DEFAULT_PORT = 1000
READ_SIZE = 512
_POLL_INTERVAL = 0.1


class Communicator:
    """Owns the TCP connection to the gripper.

    Received bytes are split into responses, and each response is handed to
    the attached observer. A disconnect response is not passed on; it ends
    the connection instead.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int | str = DEFAULT_PORT,
        *,
        connect_timeout: float = 5.0,
        stop_timeout: float = 1.0,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.connect_timeout = connect_timeout
        self.stop_timeout = stop_timeout
        self._observer: ResponseObserver | None = None
        self._splitter = FrameSplitter()
        self._socket: socket.socket | None = None
        self._reader: threading.Thread | None = None
        self._keep_alive = False
        self._send_lock = threading.Lock()
        self._disconnected = threading.Event()
        logger.info("Communicator: host = %s, port = %d", self.host, self.port)

    def __enter__(self) -> Communicator:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def running(self) -> bool:
        """True while a connection is open and being read."""
        return self._reader is not None and self._keep_alive

    def attach(self, observer: ResponseObserver) -> None:
        """Set the observer that receives every response."""
        self._observer = observer

    def start(self) -> None:
        """Connect to the gripper and start reading responses in a thread.

        Raises OSError if the connection cannot be made.
        """
        if self._reader is not None:
            logger.warning("a connection seems to be established already")
            return
        sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
        sock.settimeout(_POLL_INTERVAL)
        self._socket = sock
        self._splitter.clear()
        self._disconnected.clear()
        self._keep_alive = True
        self._reader = threading.Thread(target=self._read_loop, name="wsg50-reader", daemon=True)
        self._reader.start()

    def stop(self) -> bool:
        """Announce the disconnect, close the connection and wait for the reader.

        Returns False if there was no connection to close.
        """
        if self._reader is None:
            logger.info("connection seems already closed")
            return False
        try:
            self.push_message(Message(Command.DISCONNECT))
        except OSError as exc:
            logger.error("could not send disconnect message: %s", exc)
        else:
            if not self._disconnected.wait(self.stop_timeout):
                logger.warning("no disconnect response received")
        self._keep_alive = False
        self._reader.join()
        self._reader = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        logger.info("connection closed")
        return True

    def push_message(self, message: Message) -> None:
        """Encode a message and write it to the gripper.

        Raises ConnectionError if no connection is open.
        """
        frame = build_frame(message)
        with self._send_lock:
            if self._socket is None:
                raise ConnectionError("not connected to the gripper")
            logger.debug("push message: %s", format_hex(frame))
            self._socket.sendall(frame)

    def handle_data(self, data: bytes) -> list[Response]:
        """Process one received packet; return the responses found in it."""
        responses = self._splitter.feed(data)
        for response in responses:
            if response.id == Command.DISCONNECT:
                if response.ok:
                    self._keep_alive = False
                self._disconnected.set()
                continue
            if self._observer is None:
                logger.warning("no observer attached, dropping response 0x%02X", response.id)
                continue
            self._observer.update(response)
        return responses

    def _read_loop(self) -> None:
        sock = self._socket
        if sock is None:
            return
        while self._keep_alive:
            try:
                data = sock.recv(READ_SIZE)
            except socket.timeout:
                continue
            except OSError as exc:
                logger.error("error while reading from the gripper: %s", exc)
                break
            if not data:
                logger.warning("connection closed by the gripper")
                break
            self.handle_data(data)
        self._disconnected.set()