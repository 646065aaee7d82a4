# -*- coding: utf-8 -*-
"""Per-view and aggregate reprojection error of a solved camera model."""
import math

import cv2
import numpy as np


def view_residual(object_points, image_points, rvec, tvec, camera_matrix, dist_coeffs):
    """
    Project one view's board points and compare them with the observed corners.

    Returns
    -------
    (norm_sq, n) : tuple[float, int]
        Squared L2 norm of the flattened difference and the number of points.
    """
    obj = np.asarray(object_points, dtype=np.float64).reshape(-1, 3)
    obs = np.asarray(image_points, dtype=np.float64).reshape(-1, 2)
    n = len(obs)
    if n == 0:
        raise ValueError("view has no image points")
    if len(obj) != n:
        raise ValueError(f"view has {len(obj)} object points but {n} image points")

    proj, _ = cv2.projectPoints(obj, np.asarray(rvec, dtype=np.float64),
                                np.asarray(tvec, dtype=np.float64),
                                np.asarray(camera_matrix, dtype=np.float64),
                                np.asarray(dist_coeffs, dtype=np.float64))
    d = obs - proj.reshape(-1, 2)
    return float(np.sum(d * d)), n


def score(object_points, image_points, rvecs, tvecs, camera_matrix, dist_coeffs):
    """
    Score a solve against the correspondences it was computed from.

    Parameters
    ----------
    object_points : list[np.ndarray]
        (N,3) board points per view.
    image_points : list[np.ndarray]
        (N,1,2) or (N,2) observed corners per view.
    rvecs, tvecs : list[np.ndarray]
        Pose of each view.
    camera_matrix : np.ndarray
        3x3 intrinsic matrix.
    dist_coeffs : np.ndarray
        Distortion vector in OpenCV order.

    Returns
    -------
    per_view : list[float]
        ``sqrt(norm_sq / n)`` for each view.
    avg : float
        Points-weighted RMS over all views, ``sqrt(sum(norm_sq) / sum(n))``.
    """
    n_views = len(object_points)
    if n_views == 0:
        raise ValueError("no views to score")
    if not (len(image_points) == len(rvecs) == len(tvecs) == n_views):
        raise ValueError(
            f"mismatched inputs: {n_views} object sets, {len(image_points)} image sets, "
            f"{len(rvecs)} rvecs, {len(tvecs)} tvecs")

    per_view = []
    total_sq = 0.0
    total_pts = 0
    for i in range(n_views):
        norm_sq, n = view_residual(object_points[i], image_points[i], rvecs[i], tvecs[i],
                                   camera_matrix, dist_coeffs)
        per_view.append(math.sqrt(norm_sq / n))
        total_sq += norm_sq
        total_pts += n
    return per_view, math.sqrt(total_sq / total_pts)
