import pytest

from robocal.to_rpy import main


def _values(out):
    return [float(v) for v in out.strip().split(", ")]


def test_usage_on_missing_arguments(capsys):
    assert main(["1", "2"]) != 0
    assert "usage: to_rpy a b c" in capsys.readouterr().err


def test_zero_rotation(capsys):
    assert main(["0", "0", "0"]) == 0
    assert _values(capsys.readouterr().out) == pytest.approx([0.0, 0.0, 0.0])


def test_rotation_about_z(capsys):
    assert main(["0", "0", "0.5"]) == 0
    assert _values(capsys.readouterr().out) == pytest.approx([0.0, 0.0, 0.5], abs=1e-6)


def test_rotation_about_x(capsys):
    assert main(["0.25", "0", "0"]) == 0
    assert _values(capsys.readouterr().out) == pytest.approx([0.25, 0.0, 0.0], abs=1e-6)


def test_non_numeric_argument_reads_as_zero(capsys):
    assert main(["abc", "0", "0.5xyz"]) == 0
    assert _values(capsys.readouterr().out) == pytest.approx([0.0, 0.0, 0.5], abs=1e-6)


def test_output_has_three_fields(capsys):
    main(["0.1", "0.2", "0.3"])
    assert len(capsys.readouterr().out.strip().split(", ")) == 3