# -*- coding: utf-8 -*-
from typing import Optional

import cv2
import numpy as np

from .board import BoardSpec

SUBPIX_WINDOW = (11, 11)
SUBPIX_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 0.1)


def find_corners(gray, pattern_size, use_sb=False):
    if use_sb and hasattr(cv2, "findChessboardCornersSB"):
        found, corners = cv2.findChessboardCornersSB(gray, pattern_size, flags=cv2.CALIB_CB_NORMALIZE_IMAGE)
        if found:
            return True, corners.astype(np.float32)
        # fall back to classic if SB fails on this frame
    flags = cv2.CALIB_CB_ADAPTIVE_THRESH + cv2.CALIB_CB_NORMALIZE_IMAGE + cv2.CALIB_CB_FAST_CHECK
    found, corners = cv2.findChessboardCorners(gray, pattern_size, flags=flags)
    if not found:
        return False, None
    refined = cv2.cornerSubPix(gray, corners, SUBPIX_WINDOW, (-1, -1), SUBPIX_CRITERIA)
    return True, refined


def detect_board_corners(image: np.ndarray, board: BoardSpec, use_sb: bool = False) -> Optional[np.ndarray]:
    """Return the refined (N,1,2) corner grid of ``board`` in ``image``, or None on a miss."""
    gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    found, corners = find_corners(gray, board.pattern_size, use_sb=use_sb)
    if not found or corners is None or len(corners) != board.corner_count:
        return None
    return corners.reshape(-1, 1, 2)


def draw_corners(image: np.ndarray, board: BoardSpec, corners: np.ndarray) -> None:
    cv2.drawChessboardCorners(image, board.pattern_size, corners, True)
