# -*- coding: utf-8 -*-
"""
View acquisition state machine.

The interactive loop owns one ``CaptureSession`` and calls ``step`` once per
frame with what happened on that frame (detected corners, pressed keys, the
time).  Everything that decides whether a view is kept and when the solve runs
lives here, so the policy can be exercised without a camera or a window.

    DETECTING --start--> CAPTURING --target reached, solve ok--> CALIBRATED
        ^                    |                                      |
        +----solve failed----+                 <------start---------+
"""
import enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

KEY_ESC = 27


class CalibState(enum.Enum):
    DETECTING = 0
    CAPTURING = 1
    CALIBRATED = 2


class TriggerPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_views: int = Field(gt=0)
    min_delay: float = Field(default=1.0, ge=0)  # seconds
    manual: bool = False


@dataclass(frozen=True)
class Signals:
    start: bool = False
    capture: bool = False
    toggle_undistort: bool = False
    quit: bool = False


NO_SIGNALS = Signals()


def signals_from_key(key: int) -> Signals:
    if key is None or key < 0:
        return NO_SIGNALS
    key &= 0xFF
    return Signals(
        start=key == ord('g'),
        capture=key == ord('c'),
        toggle_undistort=key == ord('u'),
        quit=key in (KEY_ESC, ord('q')),
    )


@dataclass
class FrameEvent:
    corners: Optional[np.ndarray] = None
    image_size: Optional[Tuple[int, int]] = None
    timestamp: float = 0.0
    signals: Signals = NO_SIGNALS
    finite: bool = False
    exhausted: bool = False


@dataclass
class CaptureSession:
    mode: CalibState = CalibState.DETECTING
    views: List[np.ndarray] = field(default_factory=list)
    image_size: Optional[Tuple[int, int]] = None
    last_capture: Optional[float] = None
    undistort: bool = False
    result: object = None
    calibrations: int = 0
    captured: bool = False
    finished: bool = False

    def clear_views(self):
        self.views = []
        self.last_capture = None


def new_session(finite: bool) -> CaptureSession:
    """Image lists are captured straight away; live sources wait for a start signal."""
    return CaptureSession(mode=CalibState.CAPTURING if finite else CalibState.DETECTING)


def qualifies(session: CaptureSession, event: FrameEvent, policy: TriggerPolicy) -> bool:
    if event.finite:
        return True
    if policy.manual:
        return event.signals.capture
    if session.last_capture is None:
        return True
    return event.timestamp - session.last_capture > policy.min_delay


def _calibrate(session: CaptureSession, calibrate: Callable):
    session.calibrations += 1
    result = calibrate(list(session.views), session.image_size)
    if getattr(result, "success", False):
        session.mode = CalibState.CALIBRATED
        session.result = result
    else:
        session.mode = CalibState.DETECTING
        session.clear_views()
    return result


def step(session: CaptureSession, event: FrameEvent, policy: TriggerPolicy,
         calibrate: Callable) -> CaptureSession:
    """
    Advance ``session`` by one frame and return it.

    ``calibrate(views, image_size)`` is called at most once per capture
    session and must return an object with a ``success`` attribute.
    """
    session.captured = False
    if session.finished:
        return session

    if event.signals.quit:
        session.finished = True
        return session

    if event.exhausted:
        # a short image list still gets one solve on whatever was captured
        if event.finite and session.mode is CalibState.CAPTURING and session.views:
            _calibrate(session, calibrate)
        session.finished = True
        return session

    if event.image_size is not None:
        session.image_size = tuple(event.image_size)

    if event.signals.toggle_undistort and session.mode is CalibState.CALIBRATED:
        session.undistort = not session.undistort

    if event.signals.start and not event.finite:
        session.mode = CalibState.CAPTURING
        session.undistort = False
        session.clear_views()

    if (session.mode is CalibState.CAPTURING and event.corners is not None
            and qualifies(session, event, policy)):
        session.views.append(np.asarray(event.corners, dtype=np.float32).reshape(-1, 1, 2))
        session.last_capture = event.timestamp
        session.captured = True

    if session.mode is CalibState.CAPTURING and len(session.views) >= policy.target_views:
        _calibrate(session, calibrate)
        if event.finite:
            session.finished = True

    return session


def status_text(session: CaptureSession, policy: TriggerPolicy) -> str:
    if session.mode is CalibState.CAPTURING:
        return f"{len(session.views)}/{policy.target_views}"
    if session.mode is CalibState.CALIBRATED:
        return "Calibrated Undist" if session.undistort else "Calibrated"
    return "Press 'g' to start"
