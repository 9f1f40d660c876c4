"""Wire format of the gripper protocol: framing, checksums and stream splitting."""

from __future__ import annotations

import logging

from .status import Command, Message, Response, log_status

logger = logging.getLogger(__name__)

PREAMBLE_BYTE = 0xAA
PREAMBLE = bytes([PREAMBLE_BYTE]) * 3
HEADER_SIZE = len(PREAMBLE) + 3  # preamble, id, 16-bit length
CHECKSUM_SIZE = 2
STATUS_SIZE = 2
MIN_RESPONSE_SIZE = HEADER_SIZE + STATUS_SIZE
RESPONSE_OVERHEAD = HEADER_SIZE + STATUS_SIZE + CHECKSUM_SIZE
BUFFER_SIZE = 500
MAX_FRAMES_PER_CHUNK = 200
CRC_START = 0xFFFF


class ProtocolError(ValueError):
    """Raised when received bytes do not form a valid response frame."""


def _make_crc_table() -> tuple[int, ...]:
    table = []
    for index in range(256):
        crc = index << 8
        for _ in range(8):
            crc = (crc << 1) ^ 0x1021 if crc & 0x8000 else crc << 1
            crc &= 0xFFFF
        table.append(crc)
    return tuple(table)


_CRC_TABLE = _make_crc_table()


def crc16(data: bytes, crc: int = CRC_START) -> int:
    """Table-driven CRC16 of the gripper, continuing from ``crc``."""
    for byte in data:
        crc = _CRC_TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc


def build_frame(message: Message) -> bytes:
    """Encode a message as preamble, id, length, payload and checksum."""
    payload = message.data
    size = len(payload)
    body = PREAMBLE + bytes([int(message.id), size & 0xFF, size >> 8]) + payload
    return body + crc16(body).to_bytes(CHECKSUM_SIZE, "little")


def parse_response(frame: bytes) -> Response:
    """Decode one response frame; the checksum is not verified."""
    frame = bytes(frame)
    if len(frame) < MIN_RESPONSE_SIZE:
        raise ProtocolError(
            f"response message incomplete: {len(frame)} bytes, "
            f"at least {MIN_RESPONSE_SIZE} needed"
        )
    announced = int.from_bytes(frame[4:6], "little")
    if announced < STATUS_SIZE:
        raise ProtocolError(f"announced length {announced} leaves no room for a status code")
    payload_length = announced - STATUS_SIZE
    actual = len(frame) - RESPONSE_OVERHEAD
    if payload_length != actual:
        raise ProtocolError(
            "length of response does not match announced data length: "
            f"actual {actual}, announced {payload_length}"
        )
    status = int.from_bytes(frame[6:8], "little")
    payload = frame[MIN_RESPONSE_SIZE:MIN_RESPONSE_SIZE + payload_length]
    return Response(frame[3], status, payload)


def find_preamble(data: bytes, start: int = 0) -> int:
    """Index of the preamble at or after ``start``, or -1.

    The first 0xAA byte found is taken as the start of the preamble; if the
    bytes there do not form a full preamble, the search gives -1.
    """
    index = bytes(data).find(PREAMBLE_BYTE, max(start, 0))
    if index == -1:
        return -1
    return index if data[index:index + len(PREAMBLE)] == PREAMBLE else -1


def format_hex(data: bytes) -> str:
    """Bytes as upper-case hex pairs separated by spaces."""
    return " ".join(f"{byte:02X}" for byte in data)


class FrameSplitter:
    """Splits a TCP byte stream into response frames.

    A packet may carry several concatenated responses, and a response may be
    split across packets; an incomplete tail is kept until the next packet.
    Processing of a packet stops after a disconnect response.
    """

    def __init__(self) -> None:
        self._pending = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes of an incomplete response waiting for the rest."""
        return bytes(self._pending)

    def clear(self) -> None:
        """Drop any incomplete response."""
        self._pending.clear()

    def _keep(self, frame: bytes) -> None:
        self._pending.clear()
        if len(frame) > BUFFER_SIZE:
            logger.error("incomplete response of %d bytes is too long to keep", len(frame))
            return
        self._pending.extend(frame)

    def feed(self, data: bytes) -> list[Response]:
        """Take one received packet and return the responses completed by it."""
        data = bytes(data)
        responses: list[Response] = []
        pos1 = find_preamble(data, 0)

        if pos1 != 0:
            if self._pending:
                head = data if pos1 == -1 else data[:pos1]
                combined = bytes(self._pending) + head
                logger.warning("message has been split, concatenating: %s", format_hex(combined))
                self.clear()
                try:
                    response = parse_response(combined)
                except ProtocolError as exc:
                    logger.error("could not rebuild split response: %s", exc)
                else:
                    responses.append(response)
                    if response.id == Command.DISCONNECT:
                        return responses
            else:
                logger.error("missing the first part of the message")

        count = 0
        while pos1 != -1 and count < MAX_FRAMES_PER_CHUNK:
            pos2 = find_preamble(data, pos1 + len(PREAMBLE) + 1)
            if pos2 > pos1:
                frame = data[pos1:pos2]
                pos1 = pos2
            else:
                frame = data[pos1:]
                pos1 = -1
            count += 1

            try:
                response = parse_response(frame)
            except ProtocolError as exc:
                logger.error("could not create response (%s), keeping it for later", exc)
                self._keep(frame)
                continue

            if response.id == Command.DISCONNECT:
                if response.ok:
                    logger.warning("received successful disconnect response")
                else:
                    log_status(response.status)
                responses.append(response)
                break

            if not response.ok:
                log_status(response.status)
            responses.append(response)

        return responses