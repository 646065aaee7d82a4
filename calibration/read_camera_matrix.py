# -*- coding: utf-8 -*-
"""Print the camera matrix stored in a calibration document."""
import sys

import numpy as np

from .errors import EXIT_READ_FAILURE, FileNotReadable, MissingField
from .store import load_camera_matrix


def usage(name="read-camera-matrix"):
    return f"usage : {name} <calib_camera_data_file.yml>"


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(usage(), file=sys.stderr)
        return EXIT_READ_FAILURE

    filename = argv[0]
    try:
        K = load_camera_matrix(filename)
    except FileNotReadable:
        print(f"Failed to open FileStorage : {filename}", file=sys.stderr)
        return EXIT_READ_FAILURE
    except MissingField as e:
        print(f"No camera matrix in {filename}: {e}", file=sys.stderr)
        return EXIT_READ_FAILURE

    rows, cols = K.shape[:2]
    print(f"matrix size = [{rows}x{cols}]")
    print(f"matrix element size = {K.itemsize * (K.shape[2] if K.ndim > 2 else 1)}")
    print(f"Camera matrix = {np.array2string(K, precision=10, separator=', ')}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
