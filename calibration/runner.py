# -*- coding: utf-8 -*-
from dataclasses import dataclass, field
from typing import List

import cv2
import numpy as np

from .board import BoardSpec, build_obj_grid
from .reprojection import score

DIST_SLOTS = 8

# Always added to the caller's flags. The two highest-order radial terms of the
# 8-slot model stay at zero, which keeps solves on small boards stable.
# NOTE: not exposed on the command line; nothing so far says it should be.
FIXED_DISTORTION_TERMS = cv2.CALIB_FIX_K4 | cv2.CALIB_FIX_K5

# Anything beyond this magnitude in K or dist is treated as a diverged solve.
MAX_PARAMETER_MAGNITUDE = 1e10


@dataclass
class CalibrationResult:
    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray
    rvecs: List[np.ndarray] = field(default_factory=list)
    tvecs: List[np.ndarray] = field(default_factory=list)
    image_points: List[np.ndarray] = field(default_factory=list)
    per_view_errors: List[float] = field(default_factory=list)
    avg_error: float = float("nan")
    rms: float = float("nan")
    success: bool = False

    @property
    def poses(self):
        return list(zip(self.rvecs, self.tvecs))

    @property
    def nframes(self) -> int:
        return max(len(self.rvecs), len(self.per_view_errors), len(self.image_points))


def initial_camera_matrix(flags: int, aspect_ratio: float) -> np.ndarray:
    K = np.eye(3, dtype=np.float64)
    if flags & cv2.CALIB_FIX_ASPECT_RATIO:
        K[0, 0] = aspect_ratio
    return K


def in_range(a) -> bool:
    a = np.asarray(a, dtype=np.float64)
    return bool(np.all(np.isfinite(a)) and np.all(np.abs(a) <= MAX_PARAMETER_MAGNITUDE))


def _fit_dist(dist) -> np.ndarray:
    flat = np.asarray(dist, dtype=np.float64).reshape(-1)
    out = np.zeros(DIST_SLOTS, dtype=np.float64)
    out[:min(DIST_SLOTS, flat.size)] = flat[:DIST_SLOTS]
    return out


def run_calibration(views, image_size, board: BoardSpec, aspect_ratio: float = 1.0, flags: int = 0,
                    solve=cv2.calibrateCamera) -> CalibrationResult:
    """
    Solve for intrinsics from accumulated board views.

    ``solve`` follows the ``cv2.calibrateCamera`` signature and return value.
    A diverged or failing solve is reported through ``success = False``; per-view
    and average errors are still filled in whenever the poses allow it.
    """
    W, H = int(image_size[0]), int(image_size[1])
    objp = build_obj_grid(board)
    objpoints = [objp] * len(views)
    imgpoints = [np.asarray(v, dtype=np.float32).reshape(-1, 1, 2) for v in views]

    K = initial_camera_matrix(flags, aspect_ratio)
    dist = np.zeros((DIST_SLOTS, 1), dtype=np.float64)

    try:
        rms, K, dist, rvecs, tvecs = solve(objpoints, imgpoints, (W, H), K, dist,
                                           flags=flags | FIXED_DISTORTION_TERMS)
    except cv2.error as e:
        print(f"[WARN] Calibration solve raised: {e}")
        return CalibrationResult(camera_matrix=K, dist_coeffs=_fit_dist(dist), image_points=imgpoints)

    print(f"[INFO] RMS error reported by calibrateCamera: {rms:g}")
    K = np.asarray(K, dtype=np.float64).reshape(3, 3)
    dist = _fit_dist(dist)
    rvecs = [np.asarray(r, dtype=np.float64).reshape(3, 1) for r in rvecs]
    tvecs = [np.asarray(t, dtype=np.float64).reshape(3, 1) for t in tvecs]
    ok = in_range(K) and in_range(dist)

    result = CalibrationResult(camera_matrix=K, dist_coeffs=dist, rvecs=rvecs, tvecs=tvecs,
                               image_points=imgpoints, rms=float(rms), success=ok)
    try:
        result.per_view_errors, result.avg_error = score(objpoints, imgpoints, rvecs, tvecs, K, dist)
    except (ValueError, cv2.error) as e:
        print(f"[WARN] Could not score calibration: {e}")
        result.success = False
    if len(result.per_view_errors) != len(views):
        result.success = False
    return result
