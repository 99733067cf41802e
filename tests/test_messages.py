from robocal.messages import (
    CalibrationData,
    CameraInfo,
    Observation,
    PointStamped,
    get_sensor_index,
    has_sensor,
)


def _data():
    return CalibrationData(
        observations=[
            Observation(sensor_name="camera"),
            Observation(sensor_name="arm"),
            Observation(sensor_name="camera"),
        ]
    )


def test_sensor_index_finds_first_match():
    assert get_sensor_index(_data(), "camera") == 0
    assert get_sensor_index(_data(), "arm") == 1


def test_sensor_index_missing():
    assert get_sensor_index(_data(), "laser") is None
    assert get_sensor_index(CalibrationData(), "camera") is None


def test_has_sensor():
    assert has_sensor(_data(), "arm") is True
    assert has_sensor(_data(), "laser") is False


def test_defaults_are_independent():
    a = Observation()
    b = Observation()
    a.features.append(PointStamped(frame_id="x"))
    assert b.features == []


def test_camera_info_matrix_sizes():
    info = CameraInfo()
    assert len(info.P) == 12
    assert len(info.K) == 9