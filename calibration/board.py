# -*- coding: utf-8 -*-
import numpy as np
from pydantic import BaseModel, ConfigDict, Field


class BoardSpec(BaseModel):
    """Checkerboard geometry: inner-corner counts and square edge length."""
    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    square_size: float = Field(default=1.0, gt=0)

    @property
    def pattern_size(self):
        return (self.width, self.height)

    @property
    def corner_count(self) -> int:
        return self.width * self.height


def parse_pattern(s: str):
    """"9x6" -> (9, 6); ValueError on anything else."""
    w, h = s.strip().lower().split("x")
    return (int(w), int(h))


def build_obj_grid(board: BoardSpec) -> np.ndarray:
    # row-major: point r*W + c sits at (c*S, r*S, 0)
    objp = np.zeros((board.height * board.width, 3), np.float32)
    objp[:, :2] = np.mgrid[0:board.width, 0:board.height].T.reshape(-1, 2)
    objp *= board.square_size
    return objp
