# -*- coding: utf-8 -*-
import argparse
import sys
from typing import Optional

import cv2
from pydantic import BaseModel, Field, ValidationError

from .acquisition import TriggerPolicy
from .board import BoardSpec, parse_pattern
from .errors import ConfigurationError

DEFAULT_OUTPUT = "out_camera_data.yml"

LIVE_CAPTURE_HELP = (
    "When the live video from camera is used as input, the following hot-keys may be used:\n"
    "  <ESC>, 'q' - quit the program\n"
    "  'g' - start capturing images\n"
    "  'c' - capture the current view (manual trigger mode)\n"
    "  'u' - switch undistortion on/off\n"
)

USAGE_EXAMPLES = (
    "example command line for calibration from a live feed:\n"
    "  calib-intrinsics -w 4 -h 5 -s 0.025 -o camera.yml -op -oe\n"
    "example command line for calibration from a list of stored images:\n"
    "  calib-intrinsics -w 4 -h 5 -s 0.025 -o camera.yml -op -oe image_list.xml\n"
    "where image_list.xml is an OpenCV XML/YAML file holding a sequence of image paths.\n"
    "A directory of images may be given instead of a list file.\n"
)


class CalibrationConfig(BaseModel):
    board_width: int = Field(gt=0)
    board_height: int = Field(gt=0)
    square_size: float = Field(default=1.0, gt=0)
    nframes: int = Field(default=10, gt=3)
    aspect_ratio: Optional[float] = Field(default=None, gt=0)
    delay_ms: int = Field(default=1000, gt=0)
    output: str = DEFAULT_OUTPUT
    write_points: bool = False
    write_extrinsics: bool = False
    zero_tangent_dist: bool = False
    fix_principal_point: bool = False
    flip_vertical: bool = False
    video_file: bool = False
    show_undistorted: bool = False
    device: int = Field(default=0, ge=0)
    reduce: int = Field(default=1, ge=1)
    manual: bool = False
    input_path: Optional[str] = None
    headless: bool = False
    sb_corners: bool = False

    @property
    def board(self) -> BoardSpec:
        return BoardSpec(width=self.board_width, height=self.board_height, square_size=self.square_size)

    @property
    def flags(self) -> int:
        flags = 0
        if self.aspect_ratio is not None:
            flags |= cv2.CALIB_FIX_ASPECT_RATIO
        if self.zero_tangent_dist:
            flags |= cv2.CALIB_ZERO_TANGENT_DIST
        if self.fix_principal_point:
            flags |= cv2.CALIB_FIX_PRINCIPAL_POINT
        return flags

    @property
    def effective_aspect_ratio(self) -> float:
        return 1.0 if self.aspect_ratio is None else self.aspect_ratio

    def trigger_policy(self, list_length: Optional[int] = None) -> TriggerPolicy:
        # an image list calibrates on all of its entries
        target = list_length if list_length else self.nframes
        return TriggerPolicy(target_views=target, min_delay=self.delay_ms / 1000.0, manual=self.manual)


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        raise ConfigurationError(message)


def build_parser() -> argparse.ArgumentParser:
    ap = _Parser(prog="calib-intrinsics", add_help=False,
                 description="Camera intrinsics calibration from a checkerboard: live camera, video file or image list.",
                 epilog=USAGE_EXAMPLES + "\n" + LIVE_CAPTURE_HELP,
                 formatter_class=argparse.RawDescriptionHelpFormatter)
    ap.add_argument("--help", action="help", help="Show this message and exit")
    ap.add_argument("-w", "--board-width", type=int, help="Number of inner corners along one board dimension")
    ap.add_argument("-h", "--board-height", type=int, help="Number of inner corners along the other board dimension")
    ap.add_argument("--pattern", help="Inner corners as WxH (e.g. 9x6), instead of -w and -h")
    ap.add_argument("-n", "--nframes", type=int, default=10,
                    help="Number of views to calibrate on (an image list uses all of its entries)")
    ap.add_argument("-d", "--delay", dest="delay_ms", type=int, default=1000,
                    help="Minimum delay in ms between automatic captures (live/video only)")
    ap.add_argument("-s", "--square-size", type=float, default=1.0, help="Square size in user-defined units")
    ap.add_argument("-o", "--output", default=DEFAULT_OUTPUT, help="Output file for intrinsic [and extrinsic] parameters")
    ap.add_argument("-op", "--write-points", action="store_true", help="Write detected feature points")
    ap.add_argument("-oe", "--write-extrinsics", action="store_true", help="Write extrinsic parameters")
    ap.add_argument("-zt", "--zero-tangent-dist", action="store_true", help="Assume zero tangential distortion")
    ap.add_argument("-a", "--aspect-ratio", type=float, help="Fix aspect ratio (fx/fy)")
    ap.add_argument("-p", "--fix-principal-point", action="store_true", help="Fix the principal point at the center")
    ap.add_argument("-v", "--flip-vertical", action="store_true", help="Flip captured images around the horizontal axis")
    ap.add_argument("-V", "--video-file", action="store_true", help="Treat [input] as a video file, not an image list")
    ap.add_argument("-su", "--show-undistorted", action="store_true",
                    help="Show undistorted list images after calibration")
    ap.add_argument("--device", type=int, default=0, help="Camera device index")
    ap.add_argument("--reduce", type=int, default=1, help="Image reduce factor for live/video frames")
    ap.add_argument("-m", "--manual", action="store_true", help="Trigger captures manually with the 'c' key")
    ap.add_argument("--headless", action="store_true", help="Run without GUI windows; capturing starts at once")
    ap.add_argument("--sb-corners", action="store_true", help="Use findChessboardCornersSB when available")
    ap.add_argument("input", nargs="?",
                    help="Image list file, image directory, video file, or camera index (digits)")
    return ap


def parse_config(argv=None) -> CalibrationConfig:
    """Parse the command line into a validated config; ConfigurationError on any problem."""
    ap = build_parser()
    args = ap.parse_args(argv)
    if args.pattern:
        try:
            w, h = parse_pattern(args.pattern)
        except ValueError as e:
            ap.print_usage(sys.stderr)
            raise ConfigurationError(f"bad --pattern '{args.pattern}', expected WxH") from e
        if args.board_width is None:
            args.board_width = w
        if args.board_height is None:
            args.board_height = h
    if args.board_width is None or args.board_height is None:
        ap.print_usage(sys.stderr)
        raise ConfigurationError("board width (-w) and height (-h) are required")

    device = args.device
    input_path = args.input
    if input_path is not None and input_path.isdigit():
        device, input_path = int(input_path), None

    try:
        return CalibrationConfig(
            board_width=args.board_width,
            board_height=args.board_height,
            square_size=args.square_size,
            nframes=args.nframes,
            aspect_ratio=args.aspect_ratio,
            delay_ms=args.delay_ms,
            output=args.output,
            write_points=args.write_points,
            write_extrinsics=args.write_extrinsics,
            zero_tangent_dist=args.zero_tangent_dist,
            fix_principal_point=args.fix_principal_point,
            flip_vertical=args.flip_vertical,
            video_file=args.video_file,
            show_undistorted=args.show_undistorted,
            device=device,
            reduce=args.reduce,
            manual=args.manual,
            input_path=input_path,
            headless=args.headless,
            sb_corners=args.sb_corners,
        )
    except ValidationError as e:
        ap.print_usage(sys.stderr)
        raise ConfigurationError(str(e)) from e
