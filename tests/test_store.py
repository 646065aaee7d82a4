import cv2
import numpy as np
import pytest

from calibration.errors import FileNotReadable, MissingField, PersistenceFailure
from calibration.runner import run_calibration
from calibration.store import (RunMetadata, SaveOptions, flags_comment, load_calibration,
                               load_camera_matrix, read_string_list, save_camera_params)
from conftest import IMAGE_SIZE


@pytest.fixture
def result(views, board, fake_solver):
    return run_calibration(views, IMAGE_SIZE, board, solve=fake_solver)


def _meta(board, flags=0, aspect_ratio=1.0):
    return RunMetadata(image_size=IMAGE_SIZE, board=board, flags=flags, aspect_ratio=aspect_ratio)


def test_round_trip_with_extrinsics_and_points(tmp_path, result, board, views):
    path = tmp_path / "camera.yml"
    save_camera_params(path, result, _meta(board),
                       SaveOptions(include_extrinsics=True, include_points=True))
    stored = load_calibration(path)

    np.testing.assert_allclose(stored.camera_matrix, result.camera_matrix)
    np.testing.assert_allclose(stored.dist_coeffs, result.dist_coeffs)
    assert stored.nframes == len(views)
    assert stored.image_size == IMAGE_SIZE
    assert stored.board == board
    assert stored.avg_error == pytest.approx(result.avg_error)
    assert stored.per_view_errors.reshape(-1).shape == (len(views),)
    assert stored.extrinsics.shape == (len(views), 6)
    np.testing.assert_allclose(stored.extrinsics[3, :3], result.rvecs[3].reshape(-1))
    np.testing.assert_allclose(stored.extrinsics[3, 3:], result.tvecs[3].reshape(-1))
    assert stored.image_points.shape == (len(views), board.corner_count, 2)
    np.testing.assert_allclose(stored.image_points[0], views[0].reshape(-1, 2))
    assert stored.calibration_time


def test_optional_blocks_omitted_by_default(tmp_path, result, board):
    path = tmp_path / "camera.yml"
    save_camera_params(path, result, _meta(board))
    stored = load_calibration(path)
    assert stored.extrinsics is None
    assert stored.image_points is None
    assert stored.aspect_ratio is None
    assert stored.flags == 0
    assert stored.dist_coeffs.shape == (8,)


def test_aspect_ratio_and_flag_comment(tmp_path, result, board):
    flags = cv2.CALIB_FIX_ASPECT_RATIO | cv2.CALIB_ZERO_TANGENT_DIST
    path = tmp_path / "camera.yml"
    save_camera_params(path, result, _meta(board, flags=flags, aspect_ratio=1.25))
    stored = load_calibration(path)
    assert stored.flags == flags
    assert stored.aspect_ratio == pytest.approx(1.25)
    text = path.read_text()
    assert "flags: +fix_aspectRatio+zero_tangent_dist" in text


def test_flags_comment_lists_named_flags():
    flags = (cv2.CALIB_USE_INTRINSIC_GUESS | cv2.CALIB_FIX_ASPECT_RATIO
             | cv2.CALIB_FIX_PRINCIPAL_POINT | cv2.CALIB_ZERO_TANGENT_DIST)
    assert flags_comment(flags) == ("flags: +use_intrinsic_guess+fix_aspectRatio"
                                    "+fix_principal_point+zero_tangent_dist")
    assert flags_comment(cv2.CALIB_FIX_PRINCIPAL_POINT) == "flags: +fix_principal_point"


def test_load_camera_matrix(tmp_path, result, board):
    path = tmp_path / "camera.yml"
    save_camera_params(path, result, _meta(board))
    K = load_camera_matrix(path)
    assert K.shape == (3, 3)
    np.testing.assert_array_equal(K, result.camera_matrix)


def test_load_camera_matrix_missing_file(tmp_path):
    with pytest.raises(FileNotReadable):
        load_camera_matrix(tmp_path / "nope.yml")


def test_load_camera_matrix_missing_field(tmp_path):
    path = tmp_path / "partial.yml"
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    fs.write("nframes", 3)
    fs.release()
    with pytest.raises(MissingField) as info:
        load_camera_matrix(path)
    assert info.value.field == "camera_matrix"


def test_scalar_camera_matrix_is_missing_field(tmp_path):
    path = tmp_path / "scalar.yml"
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    fs.write("camera_matrix", 5)
    fs.write("distortion_coefficients", 0.5)
    fs.release()
    with pytest.raises(MissingField) as info:
        load_camera_matrix(path)
    assert info.value.field == "camera_matrix"
    with pytest.raises(MissingField):
        load_calibration(path)


def test_plain_text_is_not_readable(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("view000.png\nview001.png\n")
    with pytest.raises(FileNotReadable):
        load_camera_matrix(path)
    assert read_string_list(path) is None


def test_unwritable_path_is_persistence_failure(tmp_path, result, board):
    with pytest.raises(PersistenceFailure):
        save_camera_params(tmp_path / "missing_dir" / "camera.yml", result, _meta(board))


def test_read_string_list(tmp_path):
    path = tmp_path / "images.yml"
    path.write_text("%YAML:1.0\n---\nimages:\n   - view000.png\n   - view001.png\n   - extra.jpg\n")
    assert read_string_list(path) == ["view000.png", "view001.png", "extra.jpg"]


def test_read_string_list_rejects_non_sequence(tmp_path):
    path = tmp_path / "not_a_list.yml"
    path.write_text("%YAML:1.0\n---\nimage_width: 640\n")
    assert read_string_list(path) is None
    assert read_string_list(tmp_path / "missing.yml") is None
