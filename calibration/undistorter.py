# -*- coding: utf-8 -*-
# Display-time undistortion: live toggle and post-calibration image review.
import cv2
import numpy as np


def undistort_frame(frame, K, dist):
    return cv2.undistort(frame, np.asarray(K, dtype=np.float64), np.asarray(dist, dtype=np.float64))


def build_undistort_maps(K, dist, image_size):
    """Remap tables keeping every source pixel in view (alpha = 1)."""
    K = np.asarray(K, dtype=np.float64)
    dist = np.asarray(dist, dtype=np.float64).reshape(-1, 1)
    w, h = int(image_size[0]), int(image_size[1])
    newK, _ = cv2.getOptimalNewCameraMatrix(K, dist, (w, h), 1, (w, h), centerPrincipalPoint=False)
    return cv2.initUndistortRectifyMap(K, dist, None, newK, (w, h), cv2.CV_16SC2)


def remap_frame(frame, maps):
    map1, map2 = maps
    return cv2.remap(frame, map1, map2, interpolation=cv2.INTER_LINEAR)
