import numpy as np
import pytest

from slamkit.config import Config, ConfigError


def _write(tmp_path, text):
    path = tmp_path / "default.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_reads_values_after_opencv_header(tmp_path):
    path = _write(
        tmp_path,
        "%YAML:1.0\n---\ndataset_dir: /data/kitti/00\nnum_features: 150\nnum_features_init: 50\n",
    )
    Config.set_parameter_file(path)
    assert Config.get("dataset_dir") == "/data/kitti/00"
    assert Config.get("num_features") == 150
    assert Config.get("num_features_init") == 50


def test_reads_plain_yaml(tmp_path):
    path = _write(tmp_path, "camera:\n  fx: 718.856\n")
    Config.set_parameter_file(path)
    assert Config.get("camera") == {"fx": 718.856}


def test_opencv_matrix_becomes_array(tmp_path):
    path = _write(
        tmp_path,
        "%YAML:1.0\n---\nK: !!opencv-matrix\n  rows: 2\n  cols: 2\n  dt: d\n  data: [1, 2, 3, 4]\n",
    )
    Config.set_parameter_file(path)
    matrix = Config.get("K")
    assert matrix.shape == (2, 2)
    assert np.array_equal(matrix, [[1, 2], [3, 4]])


def test_missing_key_raises(tmp_path):
    Config.set_parameter_file(_write(tmp_path, "a: 1\n"))
    with pytest.raises(ConfigError):
        Config.get("b")


def test_missing_file_raises_and_clears_parameters(tmp_path):
    Config.set_parameter_file(_write(tmp_path, "a: 1\n"))
    with pytest.raises(ConfigError):
        Config.set_parameter_file(tmp_path / "absent.yaml")
    with pytest.raises(ConfigError):
        Config.get("a")


def test_non_mapping_file_raises(tmp_path):
    with pytest.raises(ConfigError):
        Config.set_parameter_file(_write(tmp_path, "- 1\n- 2\n"))