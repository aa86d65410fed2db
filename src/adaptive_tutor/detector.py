"""Inactivity watcher that raises a checkpoint when a learner stops responding.

States run idle -> waiting -> detected. Each state arms at most one
single-shot timer and the previous timer is always cancelled first. Any
interaction drops the machine back to idle and restarts the idle window.
"""
import logging
import threading

from adaptive_tutor.config import DEFAULT_IDLE_THRESHOLD_SECONDS, DETECTION_GRACE_SECONDS

logger = logging.getLogger(__name__)

IDLE = "idle"
WAITING = "waiting"
DETECTED = "detected"


class DisengagementDetector:
    def __init__(self, idle_after: float = DEFAULT_IDLE_THRESHOLD_SECONDS,
                 detect_after: float = DETECTION_GRACE_SECONDS,
                 timer_factory=threading.Timer, on_change=None):
        self.idle_after = idle_after
        self.detect_after = detect_after
        self._timer_factory = timer_factory
        self._on_change = on_change
        self._lock = threading.RLock()
        self._state = IDLE
        self._timer = None
        self._generation = 0
        self._running = False

    @property
    def state(self) -> str:
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            self._running = True
            self._enter(IDLE)

    def stop(self) -> None:
        with self._lock:
            self._running = False
            self._cancel()

    def register_interaction(self) -> None:
        """Learner did something: collapse to idle and restart the idle window."""
        with self._lock:
            if self._running:
                self._enter(IDLE)

    def reset(self) -> None:
        """Explicit reset after the learner answers the checkpoint."""
        self.register_interaction()

    def _cancel(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm(self, delay: float, target: str) -> None:
        generation = self._generation
        timer = self._timer_factory(delay, lambda: self._fire(generation, target))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _fire(self, generation: int, target: str) -> None:
        with self._lock:
            # stale callback from a timer that was replaced
            if not self._running or generation != self._generation:
                return
            self._timer = None
            self._enter(target)

    def _enter(self, state: str) -> None:
        self._cancel()
        previous, self._state = self._state, state
        if state == IDLE:
            self._arm(self.idle_after, WAITING)
        elif state == WAITING:
            self._arm(self.detect_after, DETECTED)
        if previous != state:
            logger.debug("disengagement %s -> %s", previous, state)
            if self._on_change is not None:
                self._on_change(state)
