# -*- coding: utf-8 -*-
"""
Interactive camera intrinsics calibration from a checkerboard.

Frames come from a live camera, a video file or a list of still images. Each
frame is searched for the board's inner corners; while capturing, detected
views are kept according to the trigger policy (manual 'c' key, or a minimum
delay between automatic captures) and once enough views are gathered the
camera is calibrated and the result written with ``cv2.FileStorage``.
"""
import sys
import time

import cv2

from .acquisition import (CalibState, FrameEvent, NO_SIGNALS, new_session, signals_from_key,
                          status_text, step)
from .config import LIVE_CAPTURE_HELP, parse_config
from .detection import detect_board_corners, draw_corners
from .errors import (EXIT_CONFIGURATION_ERROR, EXIT_SOURCE_UNAVAILABLE, ConfigurationError,
                     PersistenceFailure, SourceUnavailable)
from .runner import run_calibration
from .sources import ListSource, open_source
from .store import RunMetadata, SaveOptions, save_camera_params
from .undistorter import build_undistort_maps, remap_frame, undistort_frame

WINDOW = "Image View"
STREAM_WAIT_MS = 50
LIST_WAIT_MS = 500


def run_and_save(config, views, image_size, solve=cv2.calibrateCamera):
    """Calibrate on ``views`` and persist the result when the solve is valid."""
    result = run_calibration(views, image_size, config.board,
                             aspect_ratio=config.effective_aspect_ratio,
                             flags=config.flags, solve=solve)
    print(f"[INFO] {'Calibration succeeded' if result.success else 'Calibration failed'}. "
          f"avg reprojection error = {result.avg_error:.2f}")
    if not result.success:
        print("[WARN] Solve produced out-of-range parameters; press 'g' to capture again.")
        return result

    metadata = RunMetadata(image_size=tuple(image_size), board=config.board,
                           flags=config.flags, aspect_ratio=config.effective_aspect_ratio)
    options = SaveOptions(include_extrinsics=config.write_extrinsics, include_points=config.write_points)
    try:
        save_camera_params(config.output, result, metadata, options)
        print(f"[OK] Saved intrinsics → {config.output}")
    except PersistenceFailure as e:
        print(f"[WARN] {e}. Calibration is valid but nothing was saved.")
    return result


def _draw_hud(view, session, policy):
    msg = status_text(session, policy)
    (tw, _), base_line = cv2.getTextSize(msg, 1, 1, 1)
    origin = (view.shape[1] - 2 * tw - 10, view.shape[0] - 2 * base_line - 10)
    color = (0, 255, 0) if session.mode is CalibState.CALIBRATED else (0, 0, 255)
    cv2.putText(view, msg, origin, 1, 1, color)


def _show_undistorted_list(source: ListSource, result, image_size):
    maps = build_undistort_maps(result.camera_matrix, result.dist_coeffs, image_size)
    source.rewind()
    while True:
        view = source.next_frame()
        if view is None:
            break
        cv2.imshow(WINDOW, remap_frame(view, maps))
        c = cv2.waitKey(0) & 0xFF
        if c in (27, ord('q'), ord('Q')):
            break


def run(config, source=None) -> int:
    board = config.board
    if source is None:
        source = open_source(config)
    finite = source.is_finite()
    policy = config.trigger_policy(len(source) if finite else None)
    session = new_session(finite)
    if config.headless:
        session.mode = CalibState.CAPTURING

    calibrate = lambda views, image_size: run_and_save(config, views, image_size)

    if not finite:
        print(LIVE_CAPTURE_HELP)
    if not config.headless:
        cv2.namedWindow(WINDOW, cv2.WINDOW_AUTOSIZE)

    try:
        while not session.finished:
            view = source.next_frame()
            if view is None:
                step(session, FrameEvent(exhausted=True, finite=finite, timestamp=time.monotonic()),
                     policy, calibrate)
                break

            if config.flip_vertical:
                view = cv2.flip(view, 0)
            h, w = view.shape[:2]
            corners = detect_board_corners(view, board, use_sb=config.sb_corners)
            if corners is not None:
                draw_corners(view, board, corners)

            key = -1
            if not config.headless:
                shown = view
                if session.mode is CalibState.CALIBRATED and session.undistort:
                    shown = undistort_frame(view, session.result.camera_matrix, session.result.dist_coeffs)
                _draw_hud(shown, session, policy)
                cv2.imshow(WINDOW, shown)
                key = cv2.waitKey(LIST_WAIT_MS if finite else STREAM_WAIT_MS)

            event = FrameEvent(corners=corners, image_size=(w, h), timestamp=time.monotonic(),
                               signals=signals_from_key(key) if key != -1 else NO_SIGNALS,
                               finite=finite)
            captured_before = len(session.views)
            step(session, event, policy, calibrate)
            if session.captured:
                tag = "[MANUAL]" if policy.manual and not finite else "[CAPTURE]"
                print(f"{tag} view {captured_before + 1}/{policy.target_views}")
                if not finite and not config.headless:
                    # blink so the operator sees the capture
                    cv2.imshow(WINDOW, cv2.bitwise_not(view))
                    cv2.waitKey(1)
    finally:
        source.release()

    result = session.result
    if (finite and config.show_undistorted and not config.headless
            and result is not None and result.success):
        _show_undistorted_list(source, result, session.image_size)
    if not config.headless:
        cv2.destroyAllWindows()
    return 0


def main(argv=None) -> int:
    try:
        config = parse_config(sys.argv[1:] if argv is None else argv)
    except ConfigurationError as e:
        print(f"[ERR] {e}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    try:
        return run(config)
    except SourceUnavailable as e:
        print(f"[ERR] {e}", file=sys.stderr)
        return EXIT_SOURCE_UNAVAILABLE


if __name__ == "__main__":
    sys.exit(main())
