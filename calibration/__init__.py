"""Checkerboard camera intrinsics calibration."""
__version__ = "0.1.0"
