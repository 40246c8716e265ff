"""Reading pose trajectories and measuring the error between two of them."""

from __future__ import annotations

import argparse
import math
import sys
from typing import Iterable, Sequence

from slamkit.lie import SE3

DEFAULT_GROUNDTRUTH = "./example/groundtruth.txt"
DEFAULT_ESTIMATED = "./example/estimated.txt"


def parse_trajectory(lines: Iterable[str]) -> list[SE3]:
    """Parse lines of ``time tx ty tz qx qy qz qw`` into poses; blank lines are skipped."""
    poses = []
    for number, line in enumerate(lines, start=1):
        fields = line.split()
        if not fields:
            continue
        if len(fields) != 8:
            raise ValueError(f"line {number}: expected 8 values, got {len(fields)}")
        try:
            _, tx, ty, tz, qx, qy, qz, qw = (float(f) for f in fields)
        except ValueError as exc:
            raise ValueError(f"line {number}: {exc}") from None
        poses.append(SE3.from_quaternion(qw, qx, qy, qz, (tx, ty, tz)))
    return poses


def read_trajectory(path) -> list[SE3]:
    """Read a trajectory file."""
    with open(path, encoding="utf-8") as handle:
        return parse_trajectory(handle)


def trajectory_rmse(groundtruth: Sequence[SE3], estimated: Sequence[SE3]) -> float:
    """Root mean square of the SE(3) log-distance between matching poses."""
    if not groundtruth or not estimated:
        raise ValueError("trajectories must not be empty")
    if len(groundtruth) != len(estimated):
        raise ValueError("trajectories must have the same length")
    total = 0.0
    for truth, estimate in zip(groundtruth, estimated):
        error = float(sum(c * c for c in (truth.inverse() * estimate).log()))
        total += error
    return math.sqrt(total / len(estimated))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="trajectory-error", description="Compute the RMSE between two trajectories."
    )
    parser.add_argument("groundtruth", nargs="?", default=DEFAULT_GROUNDTRUTH)
    parser.add_argument("estimated", nargs="?", default=DEFAULT_ESTIMATED)
    args = parser.parse_args(argv)

    try:
        groundtruth = read_trajectory(args.groundtruth)
        estimated = read_trajectory(args.estimated)
        rmse = trajectory_rmse(groundtruth, estimated)
    except FileNotFoundError as exc:
        print(f"trajectory {exc.filename} not found.", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(f"RMSE = {rmse:g}")
    return 0


if __name__ == "__main__":
    sys.exit(main())