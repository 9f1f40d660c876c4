"""Controller, TCP link and wire protocol for the WSG 50 parallel gripper."""

__version__ = "0.1.0"

__all__ = [
    "commands",
    "communicator",
    "controller",
    "observers",
    "protocol",
    "state",
    "status",
]