# -*- coding: utf-8 -*-
import abc
import glob
import os
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np

from .errors import SourceUnavailable
from .store import read_string_list

IMAGE_PATTERNS = ("*.png", "*.jpg", "*.jpeg", "*.bmp", "*.tif", "*.tiff")


class FrameSource(abc.ABC):
    @abc.abstractmethod
    def next_frame(self) -> Optional[np.ndarray]:
        """Next BGR frame, or None once the source has nothing more to give."""

    @abc.abstractmethod
    def is_finite(self) -> bool:
        ...

    def release(self):
        pass


class ListSource(FrameSource):
    """Still images read one after the other; unreadable entries are skipped."""

    def __init__(self, paths: List[str], base_dir: Optional[str] = None):
        self.paths = list(paths)
        self.base_dir = Path(base_dir) if base_dir else None
        self.index = 0
        self.current_path = None

    def __len__(self):
        return len(self.paths)

    def resolve(self, entry: str) -> Path:
        p = Path(entry)
        if p.is_absolute() or p.exists() or self.base_dir is None:
            return p
        return self.base_dir / p

    def next_frame(self):
        while self.index < len(self.paths):
            path = self.resolve(self.paths[self.index])
            self.index += 1
            img = cv2.imread(str(path), cv2.IMREAD_COLOR)
            if img is None:
                print(f"[WARN] Skipping unreadable: {path}")
                continue
            self.current_path = str(path)
            return img
        return None

    def is_finite(self):
        return True

    def rewind(self):
        self.index = 0
        self.current_path = None


class StreamSource(FrameSource):
    """Live camera or video file behind a ``cv2.VideoCapture``."""

    def __init__(self, cap, reduce: int = 1):
        self.cap = cap
        self.reduce = max(1, int(reduce))

    def next_frame(self):
        if not self.cap.isOpened():
            return None
        ok, frame = self.cap.read()
        if not ok or frame is None:
            return None
        if self.reduce != 1:
            h, w = frame.shape[:2]
            frame = cv2.resize(frame, (w // self.reduce, h // self.reduce), interpolation=cv2.INTER_AREA)
        return frame

    def is_finite(self):
        return False

    def release(self):
        self.cap.release()


def list_image_dir(directory) -> List[str]:
    image_paths = []
    for ext in IMAGE_PATTERNS:
        image_paths.extend(glob.glob(str(Path(directory) / ext)))
    return sorted(set(image_paths))


def open_source(config) -> FrameSource:
    """
    Pick the frame source described by ``config``.

    A readable image list (or an image directory) wins unless ``video_file`` is
    set; anything else is opened with ``cv2.VideoCapture``, falling back to the
    camera device index when no input path was given.
    """
    path = config.input_path
    if path:
        if not config.video_file:
            if os.path.isdir(path):
                paths = list_image_dir(path)
                if not paths:
                    raise SourceUnavailable(f"No images found in: {path}")
                return ListSource(paths)
            entries = read_string_list(path)
            if entries:
                return ListSource(entries, base_dir=os.path.dirname(os.path.abspath(path)))
        cap = cv2.VideoCapture(path)
        what = path
    else:
        print(f"[INFO] Required camera Id is {config.device}")
        cap = cv2.VideoCapture(config.device)
        what = f"camera {config.device}"

    if not cap.isOpened():
        cap.release()
        raise SourceUnavailable(f"Could not initialize video capture: {what}")
    return StreamSource(cap, reduce=config.reduce)
