"""Command that converts an axis-magnitude rotation to roll, pitch and yaw."""

from __future__ import annotations

import re
import sys
from typing import Sequence

from robocal.kinematics import rotation_from_axis_magnitude

_NUMBER = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_USAGE = "to_rpy: Converts axis-magnitude to RPY notation\n\nusage: to_rpy a b c\n"


def _leading_float(text: str) -> float:
    """Parse the numeric prefix of ``text``; 0.0 when there is none."""
    match = _NUMBER.match(text)
    return float(match.group()) if match else 0.0


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 3:
        sys.stderr.write(_USAGE + "\n")
        return 1
    x, y, z = (_leading_float(a) for a in args[:3])
    roll, pitch, yaw = rotation_from_axis_magnitude(x, y, z).to_rpy()
    print(f"{roll:g}, {pitch:g}, {yaw:g}")
    return 0


if __name__ == "__main__":
    sys.exit(main())