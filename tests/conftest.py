import cv2
import numpy as np
import pytest

from calibration.board import BoardSpec, build_obj_grid

IMAGE_SIZE = (640, 480)
K_TRUE = np.array([[800.0, 0.0, 320.0],
                   [0.0, 800.0, 240.0],
                   [0.0, 0.0, 1.0]])


def synthetic_poses(n=12):
    rvecs, tvecs = [], []
    for i in range(n):
        a = 2 * np.pi * i / n
        rvecs.append(np.array([[0.35 * np.cos(a)], [0.35 * np.sin(a)], [0.05 * (i % 4)]]))
        tvecs.append(np.array([[-0.04 + 0.01 * (i % 3)], [-0.05 + 0.01 * (i % 2)], [0.40 + 0.03 * (i % 4)]]))
    return rvecs, tvecs


def project_views(board, rvecs, tvecs, K=K_TRUE, dist=None):
    dist = np.zeros(5) if dist is None else dist
    objp = build_obj_grid(board).astype(np.float64)
    views = []
    for r, t in zip(rvecs, tvecs):
        pts, _ = cv2.projectPoints(objp, r, t, K, dist)
        views.append(pts.astype(np.float32))
    return views


@pytest.fixture
def board():
    return BoardSpec(width=4, height=5, square_size=0.025)


@pytest.fixture
def poses():
    return synthetic_poses(12)


@pytest.fixture
def views(board, poses):
    rvecs, tvecs = poses
    return project_views(board, rvecs, tvecs)


class FakeSolver:
    """Stands in for cv2.calibrateCamera and remembers how it was called."""

    def __init__(self, rvecs, tvecs, K=K_TRUE, dist=None):
        self.rvecs = rvecs
        self.tvecs = tvecs
        self.K = K
        self.dist = np.zeros((5, 1)) if dist is None else dist
        self.calls = []

    def __call__(self, objpoints, imgpoints, image_size, K, dist, flags=0):
        self.calls.append({"objpoints": objpoints, "imgpoints": imgpoints, "image_size": image_size,
                           "K": K.copy(), "dist": dist.copy(), "flags": flags})
        return 0.0, self.K.copy(), self.dist.copy(), list(self.rvecs), list(self.tvecs)


@pytest.fixture
def fake_solver(poses):
    return FakeSolver(*poses)
