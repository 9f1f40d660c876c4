"""Cached gripper state, kept current by the responses the gripper sends."""

from __future__ import annotations

import logging
import struct
import threading
from dataclasses import dataclass, field

from .status import Command, GraspingState, Response, Status, SystemState, log_status

logger = logging.getLogger(__name__)

_FLOAT = struct.Struct("<f")


@dataclass(frozen=True)
class GripperLimits:
    """Physical limits and defaults of the WSG50-110 gripper."""

    max_width: float = 110.0  # mm
    min_width: float = 0.0
    max_speed: float = 420.0  # mm/s
    min_speed: float = 5.0
    max_force_limit: float = 80.0  # N
    min_force_limit: float = 5.0
    max_acceleration: float = 5000.0  # mm/s^2
    min_acceleration: float = 100.0
    default_acceleration: float = 500.0
    default_speed: float = 50.0
    default_force_limit: float = 10.0


def _read_float(data: bytes, offset: int = 0) -> float | None:
    try:
        return _FLOAT.unpack_from(data, offset)[0]
    except struct.error:
        return None


def _grasping_state(code: int) -> GraspingState | int:
    try:
        return GraspingState(code)
    except ValueError:
        return code


@dataclass
class GripperState:
    """What is known about the gripper, updated from its responses.

    ``ready`` tells whether a motion or configuration command may be sent;
    ``system_states_ready`` does the same for state update requests.
    """

    limits: GripperLimits = field(default_factory=GripperLimits)
    ready: bool = True
    system_states_ready: bool = True
    checking_communication: bool = False
    communication_ok: bool = False
    loop_test_data: bytes = b""
    acceleration: float = field(default=-1.0)
    speed_setting: float = field(default=-1.0)
    force_limit: float = field(default=-1.0)
    current_force_limit: float = field(default=-1.0)
    soft_limit_minus: float = field(default=-1.0)
    soft_limit_plus: float = field(default=-1.0)
    soft_limits_set: bool = False
    grasping_state: GraspingState | int = GraspingState.IDLE
    opening_width: float = 0.0
    speed: float = 0.0
    force: float = 0.0
    temperature: float = 0.0
    system_state: SystemState = field(default_factory=SystemState)
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if self.acceleration < 0:
            self.acceleration = self.limits.default_acceleration
        if self.speed_setting < 0:
            self.speed_setting = self.limits.default_speed
        if self.force_limit < 0:
            self.force_limit = self.limits.default_force_limit
        if self.current_force_limit < 0:
            self.current_force_limit = self.limits.default_force_limit
        if self.soft_limit_minus < 0:
            self.soft_limit_minus = self.limits.min_width
        if self.soft_limit_plus < 0:
            self.soft_limit_plus = self.limits.max_width

    def clear_soft_limits(self) -> None:
        """Forget any soft limits and fall back to the full stroke."""
        with self._lock:
            self.soft_limits_set = False
            self.soft_limit_minus = self.limits.min_width
            self.soft_limit_plus = self.limits.max_width

    def apply(self, response: Response) -> bool:
        """Update the state from one response; False if its id is not handled."""
        handler = self._HANDLERS.get(response.id)
        if handler is None:
            return False
        with self._lock:
            handler(self, response)
        return True

    # connection manager

    def _on_loop(self, response: Response) -> None:
        if not self.checking_communication:
            return
        ok = True
        if len(self.loop_test_data) == response.length:
            ok = self.loop_test_data == response.data
        self.communication_ok = ok
        self.checking_communication = False

    # motion control

    def _on_homing(self, response: Response) -> None:
        if response.status == Status.CMD_PENDING:
            logger.info("Do homing...")
            self.ready = False
        elif response.ok:
            self.ready = True
            logger.info("Reached homing position.")
        else:
            logger.error("Some error occured during homing:")
            log_status(response.status)

    def _on_preposition(self, response: Response) -> None:
        status = response.status
        if response.ok:
            logger.info("Reached preposition fingers position.")
            self.ready = True
        elif status == Status.AXIS_BLOCKED:
            logger.error("Axis blocked. Stopping motion.")
            self.ready = True
        elif status == Status.CMD_ABORTED:
            logger.warning("STOP command has been issued while pre-positioning fingers.")
            self.ready = True
        elif status == Status.CMD_PENDING:
            logger.info("Pre-position fingers: command pending")
            self.ready = False
        else:
            logger.error("Pre-position fingers:")
            log_status(status)
            self.ready = True

    def _on_stop(self, response: Response) -> None:
        if response.ok:
            logger.info("STOP command successful")
            self.ready = True
        elif response.status == Status.NO_PARAM_EXPECTED:
            logger.error("STOP command: no parameters expected!")
        elif response.status == Status.TIMEOUT:
            logger.error("STOP command: timeout occured! Could not stop the gripper.")

    def _on_fast_stop(self, response: Response) -> None:
        if response.ok:
            logger.warning(
                "FAST STOP issued. Preventing any further motion until acknowledged."
            )
        else:
            log_status(response.status)
        self.ready = False

    def _on_ack_fast_stop(self, response: Response) -> None:
        if response.ok:
            logger.info("Acknowledging FAST STOP done! Ready for next command.")
            self.ready = True
        else:
            log_status(response.status)
            self.ready = False

    def _on_grasp(self, response: Response) -> None:
        if response.ok:
            logger.info("Grasped part.")
            self.ready = True
        elif response.status in (Status.CMD_PENDING, Status.ALREADY_RUNNING):
            logger.info("Currently busy grasping...")
            self.ready = False
        else:
            log_status(response.status)
            self.ready = True

    def _on_release(self, response: Response) -> None:
        if response.ok:
            logger.info("Part has been released.")
            self.ready = True
        elif response.status == Status.CMD_PENDING:
            logger.info("Release part: command pending.")
            self.ready = False
        elif response.status == Status.ALREADY_RUNNING:
            logger.error("Release part: error already running")
            self.ready = False
        else:
            log_status(response.status)
            self.ready = True

    # motion configuration

    def _on_set_acceleration(self, response: Response) -> None:
        if response.ok:
            logger.info("Acceleration set.")
        else:
            log_status(response.status)
        self.ready = True

    def _on_get_acceleration(self, response: Response) -> None:
        if response.ok:
            value = _read_float(response.data)
            if value is None:
                logger.error("expected 4 bytes of data for acceleration")
            else:
                self.acceleration = value
        elif response.status == Status.NO_PARAM_EXPECTED:
            logger.error("GET ACCELERATION response: no parameter expected!")
        self.ready = True

    def _on_set_force_limit(self, response: Response) -> None:
        if response.ok:
            logger.info("Force limit set.")
        else:
            log_status(response.status)
        self.ready = True

    def _on_get_force_limit(self, response: Response) -> None:
        if response.ok:
            value = _read_float(response.data)
            if value is None:
                logger.error("expected 4 bytes of data for force limit")
            else:
                self.force_limit = value
        elif response.status == Status.NO_PARAM_EXPECTED:
            logger.error("GET FORCE LIMIT response: no parameter expected!")
        self.ready = True

    def _on_set_soft_limits(self, response: Response) -> None:
        if response.ok:
            logger.info("Soft limits have been set.")
            self.soft_limits_set = True
        else:
            log_status(response.status)
            self.soft_limits_set = False
        self.ready = True

    def _on_get_soft_limits(self, response: Response) -> None:
        if response.ok:
            minus = _read_float(response.data, 0)
            plus = _read_float(response.data, 4)
            if minus is None or plus is None:
                logger.error("expected 8 bytes of data for soft limits")
                self.soft_limits_set = False
            else:
                self.soft_limit_minus = minus
                self.soft_limit_plus = plus
                self.soft_limits_set = True
        elif response.status == Status.NO_PARAM_EXPECTED:
            logger.error("GET SOFT LIMITS response: no parameter expected!")
            self.soft_limits_set = False
        else:
            logger.error("GET SOFT LIMITS response: received unexpected error")
            log_status(response.status)
            self.soft_limits_set = False
        self.ready = True

    def _on_clear_soft_limits(self, response: Response) -> None:
        if response.ok:
            logger.info("soft limits cleared successfully.")
            self.clear_soft_limits()
        elif response.status == Status.NO_PARAM_EXPECTED:
            logger.error("CLEAR SOFT LIMITS response: no parameter expected!")
        else:
            logger.error("CLEAR SOFT LIMITS response: unexpected error:")
            log_status(response.status)
        self.ready = True

    def _on_tare_force_sensor(self, response: Response) -> None:
        status = response.status
        if response.ok:
            logger.info("force sensor zeroed.")
        elif status == Status.NOT_AVAILABLE:
            logger.error("TARE FORCE SENSOR response: no force sensor installed!")
        elif status == Status.ACCESS_DENIED:
            logger.error("TARE FORCE SENSOR response: not allowed in force control mode!")
        elif status == Status.NO_PARAM_EXPECTED:
            logger.error("TARE FORCE SENSOR response: no parameter expected!")
        else:
            logger.error("TARE FORCE SENSOR response: unexpected error:")
            log_status(status)
        self.system_states_ready = True
        self.ready = True

    # system state

    def _on_system_state(self, response: Response) -> None:
        if response.ok:
            logger.info("got system state")
        elif response.status == Status.CMD_FORMAT_ERROR:
            logger.error("GET SYSTEM STATE response: command length mismatch")
        else:
            logger.error("GET SYSTEM STATE response: unexpected error:")
            log_status(response.status)
        self.system_states_ready = True

    def _on_grasping_state(self, response: Response) -> None:
        if response.ok and response.data:
            self.grasping_state = _grasping_state(response.data[0])
        else:
            logger.error("GET GRASPING STATE response: unexpected error")
            log_status(response.status)
        self.system_states_ready = True

    def _value_update(self, response: Response, attribute: str, label: str) -> None:
        if response.ok:
            if response.length == 4:
                setattr(self, attribute, _read_float(response.data))
            else:
                logger.error("expected 4 bytes of data for %s!", label)
        elif response.status == Status.CMD_FORMAT_ERROR:
            logger.error("GET %s response: command length mismatch", label.upper())
        else:
            logger.error("GET %s response: unexpected error:", label.upper())
            log_status(response.status)
        self.system_states_ready = True

    def _on_width(self, response: Response) -> None:
        self._value_update(response, "opening_width", "opening width")

    def _on_speed(self, response: Response) -> None:
        self._value_update(response, "speed", "speed")

    def _on_force(self, response: Response) -> None:
        self._value_update(response, "force", "force")

    _HANDLERS = {
        Command.LOOP: _on_loop,
        Command.HOMING: _on_homing,
        Command.PREPOSITION_FINGERS: _on_preposition,
        Command.STOP: _on_stop,
        Command.FAST_STOP: _on_fast_stop,
        Command.ACK_FAST_STOP: _on_ack_fast_stop,
        Command.GRASP_PART: _on_grasp,
        Command.RELEASE_PART: _on_release,
        Command.SET_ACCELERATION: _on_set_acceleration,
        Command.GET_ACCELERATION: _on_get_acceleration,
        Command.SET_FORCE_LIMIT: _on_set_force_limit,
        Command.GET_FORCE_LIMIT: _on_get_force_limit,
        Command.SET_SOFT_LIMITS: _on_set_soft_limits,
        Command.GET_SOFT_LIMITS: _on_get_soft_limits,
        Command.CLEAR_SOFT_LIMITS: _on_clear_soft_limits,
        Command.TARE_FORCE_SENSOR: _on_tare_force_sensor,
        Command.GET_SYSTEM_STATE: _on_system_state,
        Command.GET_GRASPING_STATE: _on_grasping_state,
        Command.GET_WIDTH: _on_width,
        Command.GET_SPEED: _on_speed,
        Command.GET_FORCE: _on_force,
    }