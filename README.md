# wsg50

A Python library for driving a WSG 50 parallel gripper over its TCP
command interface. It builds the binary frames the gripper expects,
splits the incoming byte stream back into responses, keeps track of
the gripper's reported state, and offers a controller with one method
per motion, configuration and query command.

The package has no dependencies outside the standard library.

## What is inside

- `wsg50.status`: the `Status` codes returned by the gripper, the
  `Command` identifiers, `GraspingState`, and the `Message`,
  `Response` and `SystemState` records. `log_status` logs a
  non-success status code (as a warning for `ALREADY_OPEN` and
  `CMD_PENDING`, as an error otherwise) and returns the logged text;
  for success or an unknown code it returns `None`.
- `wsg50.protocol`: the wire format. `crc16` computes the frame
  checksum, `build_frame` turns a `Message` into bytes (three `0xAA`
  preamble bytes, command id, little-endian payload length, payload,
  little-endian CRC-16), and `parse_response` reads one frame back
  into a `Response`, raising `ProtocolError` if the frame is too short
  or its length field does not match. `find_preamble` and
  `format_hex` are small helpers. `FrameSplitter.feed` reassembles
  responses from TCP packets that may hold several frames or only part
  of one; an incomplete tail is kept until the next packet, and
  `FrameSplitter.clear` drops it.
- `wsg50.commands`: builders for command messages: `simple_message`,
  `loop_message`, `homing_message`, `preposition_message`,
  `grasp_message`, `release_message`, `acceleration_message`,
  `force_limit_message`, `soft_limits_message`,
  `ack_fast_stop_message` and `update_request_message`. Widths and
  speeds for grasp and release, accelerations and force limits are
  clamped to the gripper's range with `clamp`. `soft_limits_message`
  raises `ValueError` if the minus limit is at or above the maximum
  width; `update_request_message` raises `ValueError` if the period
  does not fit a signed 16-bit value.
- `wsg50.observers`: `ResponseObserver` (an abstract class with one
  `update(response)` method) and `ObserverRegistry`, which delivers
  each response to the observers attached for its command id, each
  observer at most once per id.
- `wsg50.communicator`: `Communicator` owns the TCP connection.
  `start` connects (raising `OSError` on failure) and reads responses
  in a background thread; `push_message` writes a frame (raising
  `ConnectionError` when not connected); `handle_data` splits a packet
  and hands every response to the attached observer. A disconnect
  response is not passed on; it ends the connection. `stop` announces
  the disconnect and closes the socket. It can be used as a context
  manager.
- `wsg50.state`: `GripperLimits` (stroke 0–110 mm, speed 5–420 mm/s,
  acceleration 100–5000 mm/s², force limit 5–80 N, with defaults of
  500 mm/s², 50 mm/s and 10 N) and `GripperState`, whose `apply`
  method updates the cached width, speed, force, acceleration, force
  limit, soft limits, grasping state and readiness flags from a
  response.
- `wsg50.controller`: `Controller`, the high-level interface.

## Building frames by hand

```python
from wsg50.commands import grasp_message
from wsg50.protocol import build_frame, format_hex

frame = build_frame(grasp_message(25.0, 30.0))
print(format_hex(frame))
```

Feeding raw socket data through a `FrameSplitter` yields complete
responses, even when a frame arrives split across two reads:

```python
from wsg50.protocol import FrameSplitter

splitter = FrameSplitter()
for response in splitter.feed(received_bytes):
    print(response.id, response.status, response.data)
```

## Driving the gripper

A `Controller` connects when it is created (by default to
192.168.1.20, port 1000), sends a loop-back message to check the link
and logs the result. `check_communication` repeats that check and
returns `True` if the gripper echoed the message in time.

Motion and configuration commands (`homing`, `pre_position_fingers`,
`grasp`, `release`, `set_acceleration`, `set_force_limit`,
`set_soft_limits`, `clear_soft_limits`, `tare_force_sensor`) raise
`RuntimeError` while the gripper is still busy with a previous one;
the `ready` property tells when the next may be sent. `stop`,
`fast_stop` and `ack_fast_stop` are always sent. `release` first reads
the grasping state and raises `RuntimeError` unless it is "no part
found", "part lost" or "holding".

```python
import time

from wsg50.controller import Controller


def wait_ready(controller, timeout=10.0):
    deadline = time.monotonic() + timeout
    while not controller.ready:
        if time.monotonic() > deadline:
            raise TimeoutError("gripper did not become ready")
        time.sleep(0.02)


with Controller() as controller:
    controller.homing(1)
    wait_ready(controller)
    controller.set_acceleration(200)
    wait_ready(controller)
    controller.set_force_limit(10)
    wait_ready(controller)
    controller.grasp(25.0, 30.0)
    wait_ready(controller)
    print(controller.read_width(), controller.read_force())
    controller.release(70.0, 50.0)
```

Leaving the `with` block calls `close`, which announces the disconnect
and closes the connection.

`read_width`, `read_speed`, `read_force` and `read_grasping_state`
request a value and wait for the answer, unless automatic updates are
enabled for it, in which case the cached value is returned at once.
`read_acceleration`, `read_force_limit` and `read_soft_limits` ask the
gripper as well (soft limits only if none are known). Waiting longer
than the controller's `timeout` raises `TimeoutError`.

Continuous updates are requested with `request_width_updates`,
`request_speed_updates`, `request_force_updates` and
`request_grasping_state_updates`, each taking `update_on_change_only`,
`auto_update` and `period_ms`.

To react to responses for a particular command, subclass
`ResponseObserver` and register it with
`controller.attach(observer, msg_id)`; `detach` removes it. By default
observers are called from a separate thread; pass
`threaded_notify=False` to call them directly. For testing, a
`Controller` can be given its own `communicator` and created with
`connect=False`.

## What it does not do

- There is no command-line program and no server; the package is a
  library to be used from Python code.
- Checksums of received frames are not verified.
- `read_system_state` sends the request and waits for the answer, but
  the system state flags in the response are not decoded; it returns
  the cached `SystemState`, whose flags stay at their defaults.
- Temperature, grasping statistics, system information, device tag,
  system limits and finger commands have identifiers in `Command` but
  no builders or controller methods.