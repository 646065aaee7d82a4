# -*- coding: utf-8 -*-
"""
Calibration result documents.

Results are written with ``cv2.FileStorage`` so the file is plain YAML (or XML
/ JSON, picked from the extension) that any OpenCV consumer can read back:

    calibration_time, nframes, image_width, image_height, board_width,
    board_height, square_size, [aspectRatio], flags, camera_matrix,
    distortion_coefficients, avg_reprojection_error,
    [per_view_reprojection_errors], [extrinsic_parameters], [image_points]
"""
import os
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .board import BoardSpec
from .errors import FileNotReadable, MissingField, PersistenceFailure
from .runner import CalibrationResult

FLAG_NAMES = (
    (cv2.CALIB_USE_INTRINSIC_GUESS, "use_intrinsic_guess"),
    (cv2.CALIB_FIX_ASPECT_RATIO, "fix_aspectRatio"),
    (cv2.CALIB_FIX_PRINCIPAL_POINT, "fix_principal_point"),
    (cv2.CALIB_ZERO_TANGENT_DIST, "zero_tangent_dist"),
)


@dataclass(frozen=True)
class RunMetadata:
    image_size: Tuple[int, int]
    board: BoardSpec
    flags: int = 0
    aspect_ratio: float = 1.0


@dataclass(frozen=True)
class SaveOptions:
    include_extrinsics: bool = False
    include_points: bool = False


@dataclass
class StoredCalibration:
    calibration_time: str
    nframes: int
    image_size: Tuple[int, int]
    board: BoardSpec
    flags: int
    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray
    avg_error: float
    aspect_ratio: Optional[float] = None
    per_view_errors: Optional[np.ndarray] = None
    extrinsics: Optional[np.ndarray] = None
    image_points: Optional[np.ndarray] = None


def flags_comment(flags: int) -> str:
    return "flags: " + "".join(f"+{name}" for bit, name in FLAG_NAMES if flags & bit)


def _open(path, mode):
    try:
        fs = cv2.FileStorage(str(path), mode)
    except (cv2.error, SystemError):
        # non-document input (a video, plain text) makes the binding raise
        return None
    if not fs.isOpened():
        return None
    return fs


def save_camera_params(path, result: CalibrationResult, metadata: RunMetadata,
                       options: SaveOptions = SaveOptions()):
    """Write ``result`` to ``path``; raises PersistenceFailure if it cannot be opened."""
    fs = _open(path, cv2.FILE_STORAGE_WRITE)
    if fs is None:
        raise PersistenceFailure(f"could not open {path} for writing")

    flags = int(metadata.flags)
    board = metadata.board
    try:
        fs.write("calibration_time", time.strftime("%c"))
        fs.write("nframes", int(result.nframes))
        fs.write("image_width", int(metadata.image_size[0]))
        fs.write("image_height", int(metadata.image_size[1]))
        fs.write("board_width", int(board.width))
        fs.write("board_height", int(board.height))
        fs.write("square_size", float(board.square_size))
        if flags & cv2.CALIB_FIX_ASPECT_RATIO:
            fs.write("aspectRatio", float(metadata.aspect_ratio))
        if flags != 0:
            fs.writeComment(flags_comment(flags))
        fs.write("flags", flags)

        fs.write("camera_matrix", np.asarray(result.camera_matrix, dtype=np.float64))
        fs.write("distortion_coefficients",
                 np.asarray(result.dist_coeffs, dtype=np.float64).reshape(-1, 1))
        fs.write("avg_reprojection_error", float(result.avg_error))
        if len(result.per_view_errors):
            fs.write("per_view_reprojection_errors",
                     np.asarray(result.per_view_errors, dtype=np.float64).reshape(-1, 1))

        if options.include_extrinsics and result.rvecs and result.tvecs:
            bigmat = np.hstack([
                np.asarray(result.rvecs, dtype=np.float64).reshape(-1, 3),
                np.asarray(result.tvecs, dtype=np.float64).reshape(-1, 3),
            ])
            fs.writeComment("a set of 6-tuples (rotation vector + translation vector) for each view")
            fs.write("extrinsic_parameters", bigmat)

        if options.include_points and result.image_points:
            pts = np.stack([np.asarray(v, dtype=np.float32).reshape(-1, 2) for v in result.image_points])
            fs.write("image_points", pts)
    finally:
        fs.release()


def _required(fs, path, name):
    node = fs.getNode(name)
    if node.empty() or node.isNone():
        raise MissingField(path, name)
    return node


def _required_mat(fs, path, name):
    node = _required(fs, path, name)
    try:
        m = node.mat()
    except cv2.error:
        m = None
    if m is None:
        raise MissingField(path, name)
    return m


def _optional_mat(fs, name):
    node = fs.getNode(name)
    if node.empty() or node.isNone():
        return None
    return node.mat()


def _open_for_read(path):
    if not os.path.isfile(path):
        raise FileNotReadable(f"Failed to open FileStorage : {path}")
    fs = _open(path, cv2.FILE_STORAGE_READ)
    if fs is None:
        raise FileNotReadable(f"Failed to open FileStorage : {path}")
    return fs


def load_camera_matrix(path) -> np.ndarray:
    """Read only ``camera_matrix``; FileNotReadable / MissingField on failure."""
    path = str(path)
    fs = _open_for_read(path)
    try:
        return _required_mat(fs, path, "camera_matrix")
    finally:
        fs.release()


def load_calibration(path) -> StoredCalibration:
    path = str(path)
    fs = _open_for_read(path)
    try:
        K = _required_mat(fs, path, "camera_matrix")
        dist = _required_mat(fs, path, "distortion_coefficients")
        flags = int(_required(fs, path, "flags").real())
        aspect = fs.getNode("aspectRatio")
        nframes = fs.getNode("nframes")
        return StoredCalibration(
            calibration_time=_required(fs, path, "calibration_time").string(),
            nframes=0 if nframes.empty() else int(nframes.real()),
            image_size=(int(_required(fs, path, "image_width").real()),
                        int(_required(fs, path, "image_height").real())),
            board=BoardSpec(width=int(_required(fs, path, "board_width").real()),
                            height=int(_required(fs, path, "board_height").real()),
                            square_size=_required(fs, path, "square_size").real()),
            flags=flags,
            camera_matrix=K,
            dist_coeffs=dist.reshape(-1),
            avg_error=_required(fs, path, "avg_reprojection_error").real(),
            aspect_ratio=None if aspect.empty() else aspect.real(),
            per_view_errors=_optional_mat(fs, "per_view_reprojection_errors"),
            extrinsics=_optional_mat(fs, "extrinsic_parameters"),
            image_points=_optional_mat(fs, "image_points"),
        )
    finally:
        fs.release()


def read_string_list(path) -> Optional[List[str]]:
    """Entries of the first top-level sequence of an OpenCV XML/YAML list, or None."""
    fs = _open(path, cv2.FILE_STORAGE_READ)
    if fs is None:
        return None
    try:
        node = fs.getFirstTopLevelNode()
        if node is None or not node.isSeq():
            return None
        return [node.at(i).string() for i in range(node.size())]
    finally:
        fs.release()
