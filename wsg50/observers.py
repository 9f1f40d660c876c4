"""Observers of gripper responses and a registry keyed by message id."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

from .status import Response

logger = logging.getLogger(__name__)


class ResponseObserver(ABC):
    """Something that wants to be told about gripper responses."""

    @abstractmethod
    def update(self, response: Response) -> None:
        """Handle one response from the gripper."""


class ObserverRegistry:
    """Observers registered per message id, each at most once per id."""

    def __init__(self) -> None:
        self._observers: dict[int, list[ResponseObserver]] = {}
        self._lock = threading.Lock()

    def attach(self, observer: ResponseObserver, msg_id: int) -> bool:
        """Register an observer for a message id; False if already there."""
        logger.debug("attach observer for ID 0x%02X", msg_id)
        with self._lock:
            registered = self._observers.setdefault(msg_id, [])
            if any(existing is observer for existing in registered):
                logger.debug("observer already registered, skip attaching")
                return False
            registered.append(observer)
            logger.debug(
                "%d observers now registered for ID 0x%02X", len(registered), msg_id
            )
            return True

    def detach(self, observer: ResponseObserver, msg_id: int) -> bool:
        """Remove an observer from a message id; False if it was not there."""
        logger.debug("detach observer for ID 0x%02X", msg_id)
        with self._lock:
            registered = self._observers.get(msg_id)
            if registered is None:
                logger.warning("no observer is registered for ID 0x%02X", msg_id)
                return False
            remaining = [existing for existing in registered if existing is not observer]
            removed = len(remaining) != len(registered)
            if remaining:
                self._observers[msg_id] = remaining
            else:
                del self._observers[msg_id]
            return removed

    def observers_for(self, msg_id: int) -> tuple[ResponseObserver, ...]:
        """The observers registered for a message id, in order of attachment."""
        with self._lock:
            return tuple(self._observers.get(msg_id, ()))

    def notify(self, response: Response) -> int:
        """Pass a response to every observer of its id; return how many."""
        observers = self.observers_for(response.id)
        for observer in observers:
            observer.update(response)
        return len(observers)