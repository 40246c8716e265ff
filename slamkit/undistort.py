"""Removing radial-tangential lens distortion from an image."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass

import imageio.v3 as iio
import numpy as np

DEFAULT_IMAGE = "./distorted.png"


@dataclass(frozen=True)
class Intrinsics:
    fx: float
    fy: float
    cx: float
    cy: float


@dataclass(frozen=True)
class Distortion:
    """Radial (k1, k2) and tangential (p1, p2) distortion coefficients."""

    k1: float = 0.0
    k2: float = 0.0
    p1: float = 0.0
    p2: float = 0.0

    def apply(self, x, y):
        """Distort normalised image coordinates; works on scalars and arrays."""
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        r = np.sqrt(x * x + y * y)
        r2 = r * r
        radial = 1 + self.k1 * r2 + self.k2 * r2 * r2
        x_distorted = x * radial + 2 * self.p1 * x * y + self.p2 * (r2 + 2 * x * x)
        y_distorted = y * radial + self.p1 * (r2 + 2 * y * y) + 2 * self.p2 * x * y
        return x_distorted, y_distorted


DEFAULT_INTRINSICS = Intrinsics(fx=458.654, fy=457.296, cx=367.215, cy=248.375)
DEFAULT_DISTORTION = Distortion(
    k1=-0.28340811, k2=0.07395907, p1=0.00019359, p2=1.76187114e-05
)


def undistort_image(image, intrinsics: Intrinsics, distortion: Distortion) -> np.ndarray:
    """Undistorted copy of ``image`` by nearest-neighbour lookup; unmapped pixels are 0."""
    img = np.asarray(image)
    if img.ndim not in (2, 3):
        raise ValueError(f"expected a 2D or 3D image array, got {img.ndim} dimensions")
    rows, cols = img.shape[:2]
    v, u = np.mgrid[0:rows, 0:cols].astype(float)
    x = (u - intrinsics.cx) / intrinsics.fx
    y = (v - intrinsics.cy) / intrinsics.fy
    x_distorted, y_distorted = distortion.apply(x, y)
    u_distorted = intrinsics.fx * x_distorted + intrinsics.cx
    v_distorted = intrinsics.fy * y_distorted + intrinsics.cy

    valid = (u_distorted >= 0) & (v_distorted >= 0) & (u_distorted < cols) & (v_distorted < rows)
    out = np.zeros_like(img)
    out[valid] = img[v_distorted[valid].astype(int), u_distorted[valid].astype(int)]
    return out


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="undistort", description="Remove lens distortion from a grey-scale image."
    )
    parser.add_argument("image", nargs="?", default=DEFAULT_IMAGE)
    parser.add_argument("-o", "--output", default="undistorted.png")
    args = parser.parse_args(argv)

    try:
        image = np.asarray(iio.imread(args.image, mode="L"))
    except (OSError, ValueError):
        print(f"cannot read image {args.image}", file=sys.stderr)
        return 1
    result = undistort_image(image, DEFAULT_INTRINSICS, DEFAULT_DISTORTION)
    iio.imwrite(args.output, result)
    print(f"undistorted image written to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())