"""High-level control of the gripper: commands, cached state and observers."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from typing import Callable

from .commands import (
    LOOP_TEST_PAYLOAD,
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
from .communicator import DEFAULT_HOST, DEFAULT_PORT, Communicator
from .observers import ObserverRegistry, ResponseObserver
from .state import GripperState
from .status import Command, GraspingState, Message, Response, SystemState

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1.0  # s
LOOP_TIMEOUT = 2.0  # s
_SINGLE_REQUEST_PERIOD_MS = 1000
_RELEASABLE_STATES = frozenset(
    {GraspingState.NO_PART_FOUND, GraspingState.PART_LOST, GraspingState.HOLDING}
)


class Controller(ResponseObserver):
    """Controls a WSG50 gripper over its communicator.

    Every response from the gripper updates ``state`` and is then passed to
    the observers attached for its message id.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int | str = DEFAULT_PORT,
        *,
        communicator: Communicator | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        loop_timeout: float = LOOP_TIMEOUT,
        threaded_notify: bool = True,
        connect: bool = True,
    ) -> None:
        self.state = GripperState()
        self.limits = self.state.limits
        self.timeout = timeout
        self.loop_timeout = loop_timeout
        self._threaded_notify = threaded_notify
        self._registry = ObserverRegistry()
        self._changed = threading.Condition()
        self._seen: Counter[int] = Counter()
        self._auto_updates: set[int] = set()
        self._comm = communicator if communicator is not None else Communicator(host, port)
        self._comm.attach(self)
        if connect:
            self._comm.start()
            time.sleep(0.01)
            if self.check_communication():
                logger.info("Connection is up and running.")
            else:
                logger.error("Connection failure! Please try reconnecting.")
        self.state.ready = True
        self.state.system_states_ready = True

    def __enter__(self) -> Controller:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Announce the disconnect and close the connection."""
        self._comm.stop()

    @property
    def ready(self) -> bool:
        """True if the gripper accepts the next motion or configuration command."""
        return self.state.ready

    # observers

    def update(self, response: Response) -> None:
        """Apply a response to the state, then pass it to its observers."""
        with self._changed:
            self.state.apply(response)
            self._seen[int(response.id)] += 1
            self._changed.notify_all()
        if self._threaded_notify:
            threading.Thread(
                target=self._registry.notify, args=(response,), daemon=True
            ).start()
        else:
            self._registry.notify(response)

    def attach(self, observer: ResponseObserver, msg_id: int) -> bool:
        """Notify ``observer`` of every response with id ``msg_id``."""
        return self._registry.attach(observer, msg_id)

    def detach(self, observer: ResponseObserver, msg_id: int) -> bool:
        """Stop notifying ``observer`` of responses with id ``msg_id``."""
        return self._registry.detach(observer, msg_id)

    # waiting helpers

    def _wait_until(self, predicate: Callable[[], bool], timeout: float, what: str) -> None:
        with self._changed:
            if not self._changed.wait_for(predicate, timeout):
                raise TimeoutError(f"timed out waiting for {what}")

    def _seen_count(self, msg_id: int) -> int:
        with self._changed:
            return self._seen[int(msg_id)]

    def _await_response(self, msg_id: int, baseline: int) -> None:
        self._wait_until(
            lambda: self._seen[int(msg_id)] > baseline,
            self.timeout,
            f"response 0x{int(msg_id):02X}",
        )

    def _send_and_await(self, message: Message) -> None:
        baseline = self._seen_count(message.id)
        self._comm.push_message(message)
        self._await_response(message.id, baseline)

    def _claim_ready(self, action: str) -> None:
        with self._changed:
            if not self.state.ready:
                raise RuntimeError(f"{action}: gripper is not ready to receive another command")
            self.state.ready = False

    # connection check

    def check_communication(self) -> bool:
        """Send a loop-back message; True if the gripper echoes it in time."""
        with self._changed:
            self.state.loop_test_data = LOOP_TEST_PAYLOAD
            self.state.checking_communication = True
        try:
            self._comm.push_message(loop_message(LOOP_TEST_PAYLOAD))
            with self._changed:
                answered = self._changed.wait_for(
                    lambda: not self.state.checking_communication, self.loop_timeout
                )
                if not answered:
                    self.state.checking_communication = False
                    return False
                return self.state.communication_ok
        finally:
            self.state.loop_test_data = b""

    # motion control

    def homing(self, direction: int = 0) -> None:
        """Move to the home position: 1 positive, 2 negative, else default."""
        self._claim_ready("homing")
        self._comm.push_message(homing_message(direction))

    def pre_position_fingers(self, stop_on_block: bool, width: float, speed: float) -> None:
        """Move the fingers to an opening width before grasping."""
        self._claim_ready("pre_position_fingers")
        self._comm.push_message(preposition_message(stop_on_block, width, speed))

    def stop(self) -> None:
        """Stop any motion."""
        self.state.ready = False
        self._comm.push_message(simple_message(Command.STOP))

    def fast_stop(self) -> None:
        """Stop immediately and lock motion until acknowledged."""
        self._comm.push_message(simple_message(Command.FAST_STOP))

    def ack_fast_stop(self) -> None:
        """Acknowledge a fast stop or severe error to release the motion lock."""
        self._comm.push_message(ack_fast_stop_message())

    def grasp(self, width: float, speed: float) -> None:
        """Grasp a part of nominal ``width`` (mm) at ``speed`` (mm/s)."""
        self._claim_ready("grasp")
        width = clamp(width, self.limits.min_width, self.limits.max_width)
        speed = clamp(speed, self.limits.min_speed, self.limits.max_speed)
        self._comm.push_message(grasp_message(width, speed))

    def release(self, open_width: float, speed: float) -> None:
        """Release a grasped part, opening to ``open_width`` at ``speed``.

        Raises RuntimeError if the grasping state does not allow a release.
        """
        if not self.state.ready:
            raise RuntimeError("release: gripper is not ready to receive another command")
        grasping_state = self.read_grasping_state()
        if grasping_state not in _RELEASABLE_STATES:
            raise RuntimeError(
                f"wrong grasping state, can't release part: {grasping_state!r}"
            )
        self._claim_ready("release")
        open_width = clamp(open_width, self.limits.min_width, self.limits.max_width)
        speed = clamp(speed, self.limits.min_speed, self.limits.max_speed)
        self._comm.push_message(release_message(open_width, speed))

    # motion configuration

    def set_acceleration(self, acceleration: float) -> None:
        """Set the acceleration (mm/s^2), clamped to the gripper's range."""
        self._claim_ready("set_acceleration")
        value = clamp(acceleration, self.limits.min_acceleration, self.limits.max_acceleration)
        self.state.acceleration = value
        logger.info("Set acceleration: %f", value)
        self._comm.push_message(acceleration_message(value))

    def set_force_limit(self, force_limit: float) -> None:
        """Set the grasping force limit (N), clamped to the gripper's range."""
        self._claim_ready("set_force_limit")
        value = clamp(force_limit, self.limits.min_force_limit, self.limits.max_force_limit)
        self.state.force_limit = value
        logger.info("Set force limit: %f", value)
        self._comm.push_message(force_limit_message(value))
        self.state.current_force_limit = force_limit

    def set_soft_limits(self, minus_limit: float, plus_limit: float) -> None:
        """Set the soft limits (mm); raises ValueError if minus is too high."""
        message = soft_limits_message(minus_limit, plus_limit)
        self._claim_ready("set_soft_limits")
        self.state.soft_limit_minus = minus_limit
        self.state.soft_limit_plus = plus_limit
        self._comm.push_message(message)

    def clear_soft_limits(self) -> None:
        """Clear any soft limits set before."""
        self._claim_ready("clear_soft_limits")
        self._comm.push_message(simple_message(Command.CLEAR_SOFT_LIMITS))

    def tare_force_sensor(self) -> None:
        """Zero the force sensor; not allowed in force control mode."""
        self._claim_ready("tare_force_sensor")
        self._comm.push_message(simple_message(Command.TARE_FORCE_SENSOR))

    # reading values

    def _read_value(
        self,
        command: Command,
        request: Callable[[bool, bool, int], None],
        period_ms: int = _SINGLE_REQUEST_PERIOD_MS,
    ) -> None:
        if int(command) in self._auto_updates:
            return
        baseline = self._seen_count(command)
        request(False, False, period_ms)
        self._await_response(command, baseline)

    def read_width(self) -> float:
        """Current opening width (mm), requested unless auto-updated."""
        self._read_value(Command.GET_WIDTH, self.request_width_updates)
        return self.state.opening_width

    def read_speed(self) -> float:
        """Current finger speed (mm/s), requested unless auto-updated."""
        self._read_value(Command.GET_SPEED, self.request_speed_updates)
        return self.state.speed

    def read_force(self) -> float:
        """Current grasping force (N), requested unless auto-updated."""
        self._read_value(Command.GET_FORCE, self.request_force_updates)
        return self.state.force

    def read_grasping_state(self) -> GraspingState | int:
        """Current grasping state, requested unless auto-updated."""
        self._read_value(Command.GET_GRASPING_STATE, self.request_grasping_state_updates, 0)
        return self.state.grasping_state

    def read_acceleration(self) -> float:
        """Acceleration as reported by the gripper."""
        self._send_and_await(simple_message(Command.GET_ACCELERATION))
        return self.state.acceleration

    def read_force_limit(self) -> float:
        """Force limit as reported by the gripper."""
        self._send_and_await(simple_message(Command.GET_FORCE_LIMIT))
        return self.state.force_limit

    def read_soft_limits(self) -> tuple[float, float]:
        """Soft limits (minus, plus); asked from the gripper unless known."""
        if not self.state.soft_limits_set:
            self._send_and_await(simple_message(Command.GET_SOFT_LIMITS))
        return self.state.soft_limit_minus, self.state.soft_limit_plus

    def read_system_state(
        self, update_on_change_only: bool = False, auto_update: bool = False, period_ms: int = 0
    ) -> SystemState:
        """Request the system state and return the cached flags."""
        message = update_request_message(
            Command.GET_SYSTEM_STATE, update_on_change_only, auto_update, period_ms
        )
        self._send_and_await(message)
        return self.state.system_state

    # update requests

    def _request_updates(
        self, command: Command, update_on_change_only: bool, auto_update: bool, period_ms: int
    ) -> None:
        message = update_request_message(command, update_on_change_only, auto_update, period_ms)
        logger.debug("set auto-updates for 0x%02X", int(command))
        with self._changed:
            if not self._changed.wait_for(
                lambda: self.state.system_states_ready, self.timeout
            ):
                raise TimeoutError("timed out waiting for the previous state request")
            self.state.system_states_ready = False
            if auto_update:
                self._auto_updates.add(int(command))
            else:
                self._auto_updates.discard(int(command))
        self._comm.push_message(message)

    def request_width_updates(
        self, update_on_change_only: bool = False, auto_update: bool = False, period_ms: int = 0
    ) -> None:
        """Request the opening width once or as automatic updates."""
        self._request_updates(Command.GET_WIDTH, update_on_change_only, auto_update, period_ms)

    def request_speed_updates(
        self, update_on_change_only: bool = False, auto_update: bool = False, period_ms: int = 0
    ) -> None:
        """Request the finger speed once or as automatic updates."""
        self._request_updates(Command.GET_SPEED, update_on_change_only, auto_update, period_ms)

    def request_force_updates(
        self, update_on_change_only: bool = False, auto_update: bool = False, period_ms: int = 0
    ) -> None:
        """Request the grasping force once or as automatic updates."""
        self._request_updates(Command.GET_FORCE, update_on_change_only, auto_update, period_ms)

    def request_grasping_state_updates(
        self, update_on_change_only: bool = False, auto_update: bool = False, period_ms: int = 0
    ) -> None:
        """Request the grasping state once or as automatic updates."""
        self._request_updates(
            Command.GET_GRASPING_STATE, update_on_change_only, auto_update, period_ms
        )