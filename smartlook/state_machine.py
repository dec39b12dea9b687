"""Finite state machine sequencing capture, analysis, confirmation and try-on generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from smartlook.capture import CapturedImage
from smartlook.gateway import AnalysisResult, TryOnResult

logger = logging.getLogger(__name__)


class ProcessState(str, Enum):
    """Only one non-idle state is active at a time."""

    IDLE = "idle"
    CAPTURING_VIA_CAMERA = "capturing_via_camera"
    ANALYZING = "analyzing"
    ANALYSIS_READY = "analysis_ready"
    GENERATING_TRYON = "generating_tryon"


class InvalidTransitionError(RuntimeError):
    """Raised when an event is not allowed from the current state."""

    def __init__(self, state: ProcessState, event: str) -> None:
        self.state = state
        self.event = event
        super().__init__(f"Event {event!r} is not allowed in state {state.value!r}.")


class PreconditionError(RuntimeError):
    """Raised when a flow is requested without its inputs (photo, selection, brands)."""


_TRANSITIONS: dict[tuple[ProcessState, str], ProcessState] = {
    (ProcessState.IDLE, "open_camera"): ProcessState.CAPTURING_VIA_CAMERA,
    (ProcessState.CAPTURING_VIA_CAMERA, "close_camera"): ProcessState.IDLE,
    (ProcessState.IDLE, "analyze"): ProcessState.ANALYZING,
    (ProcessState.CAPTURING_VIA_CAMERA, "analyze"): ProcessState.ANALYZING,
    (ProcessState.ANALYZING, "analysis_succeeded"): ProcessState.ANALYSIS_READY,
    (ProcessState.ANALYZING, "analysis_failed"): ProcessState.IDLE,
    (ProcessState.ANALYSIS_READY, "confirm"): ProcessState.IDLE,
    (ProcessState.ANALYSIS_READY, "retake"): ProcessState.IDLE,
    (ProcessState.IDLE, "generate_tryon"): ProcessState.GENERATING_TRYON,
    (ProcessState.GENERATING_TRYON, "tryon_succeeded"): ProcessState.IDLE,
    (ProcessState.GENERATING_TRYON, "tryon_failed"): ProcessState.IDLE,
}


@dataclass(slots=True, frozen=True)
class PendingAnalysis:
    """Image and oracle result awaiting the user's confirm or retake."""

    image: CapturedImage
    result: AnalysisResult


class ProcessStateMachine:
    """Holds the current state plus the transient data owned by it."""

    def __init__(self) -> None:
        self._state = ProcessState.IDLE
        self._pending_image: CapturedImage | None = None
        self._pending_result: AnalysisResult | None = None
        self._tryon_result: TryOnResult | None = None

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is not ProcessState.IDLE

    @property
    def pending(self) -> PendingAnalysis | None:
        if self._pending_image is None or self._pending_result is None:
            return None
        return PendingAnalysis(image=self._pending_image, result=self._pending_result)

    @property
    def pending_image(self) -> CapturedImage | None:
        return self._pending_image

    @property
    def tryon_result(self) -> TryOnResult | None:
        return self._tryon_result

    def can(self, event: str) -> bool:
        return (self._state, event) in _TRANSITIONS

    def _fire(self, event: str) -> None:
        target = _TRANSITIONS.get((self._state, event))
        if target is None:
            raise InvalidTransitionError(self._state, event)
        logger.debug("Process state %s --%s--> %s", self._state.value, event, target.value)
        self._state = target

    def open_camera(self) -> None:
        self._fire("open_camera")

    def close_camera(self) -> None:
        """Camera closed by the user, by permission denial or after a user-photo snapshot."""

        self._fire("close_camera")

    def begin_analysis(self, image: CapturedImage) -> None:
        self._fire("analyze")
        self._pending_image = image
        self._pending_result = None

    def analysis_succeeded(self, result: AnalysisResult) -> None:
        self._fire("analysis_succeeded")
        self._pending_result = result

    def analysis_failed(self) -> None:
        self._fire("analysis_failed")
        self._clear_pending()

    def confirm(self) -> PendingAnalysis:
        """Leave ``AnalysisReady`` handing over the pending image and result exactly once."""

        pending = self.pending
        if pending is None:
            raise InvalidTransitionError(self._state, "confirm")
        self._fire("confirm")
        self._clear_pending()
        return pending

    def retake(self) -> None:
        self._fire("retake")
        self._clear_pending()

    def begin_tryon(self) -> None:
        self._fire("generate_tryon")
        self._tryon_result = None

    def tryon_succeeded(self, result: TryOnResult) -> None:
        self._fire("tryon_succeeded")
        self._tryon_result = result

    def tryon_failed(self) -> None:
        self._fire("tryon_failed")

    def dismiss_result(self) -> None:
        self._tryon_result = None

    def reset(self) -> None:
        """Return to ``Idle`` from anywhere, discarding transient data."""

        if self._state is not ProcessState.IDLE:
            logger.debug("Process state %s reset to idle", self._state.value)
        self._state = ProcessState.IDLE
        self._clear_pending()

    def _clear_pending(self) -> None:
        self._pending_image = None
        self._pending_result = None
