"""Pose-graph optimisation on SE(3) with Lie-algebra errors.

Graphs are read from and written to the g2o text format using
``VERTEX_SE3:QUAT`` and ``EDGE_SE3:QUAT`` records. The first vertex
(id 0) is held fixed; the others are optimised by Levenberg-Marquardt
with left-multiplicative updates.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from typing import Iterable, TextIO

import numpy as np
from scipy.sparse import coo_matrix, identity
from scipy.sparse.linalg import spsolve

from slamkit.lie import SE3

VERTEX_TAG = "VERTEX_SE3:QUAT"
EDGE_TAG = "EDGE_SE3:QUAT"
DEFAULT_ITERATIONS = 30

_TAU = 1e-5
_MAX_TRIALS = 10
_BLOCK_ROWS, _BLOCK_COLS = np.meshgrid(np.arange(6), np.arange(6), indexing="ij")
_UPPER = np.triu_indices(6)


@dataclass
class PoseVertex:
    id: int
    estimate: SE3
    fixed: bool = False


@dataclass
class PoseEdge:
    id: int
    vertex_from: int
    vertex_to: int
    measurement: SE3
    information: np.ndarray = field(default_factory=lambda: np.eye(6))


def _fmt(value) -> str:
    return repr(float(value))


def _pose_fields(pose: SE3) -> list[str]:
    w, x, y, z = pose.rotation.quaternion()
    return [_fmt(v) for v in (*pose.translation, x, y, z, w)]


def _parse_pose(tokens: list[str]) -> SE3:
    tx, ty, tz, qx, qy, qz, qw = (float(t) for t in tokens)
    return SE3.from_quaternion(qw, qx, qy, qz, (tx, ty, tz))


@dataclass
class PoseGraph:
    vertices: dict[int, PoseVertex] = field(default_factory=dict)
    edges: list[PoseEdge] = field(default_factory=list)

    def edge_error(self, edge: PoseEdge) -> np.ndarray:
        """Twist error ``log(Z^-1 * Ti^-1 * Tj)`` of an edge."""
        ti = self.vertices[edge.vertex_from].estimate
        tj = self.vertices[edge.vertex_to].estimate
        return (edge.measurement.inverse() * ti.inverse() * tj).log()

    def total_error(self) -> float:
        """Sum of ``e^T * Omega * e`` over all edges."""
        total = 0.0
        for edge in self.edges:
            e = self.edge_error(edge)
            total += float(e @ edge.information @ e)
        return total

    def _linearize(self, index: dict[int, int]):
        size = 6 * len(index)
        rows, cols, values = [], [], []
        gradient = np.zeros(size)
        for edge in self.edges:
            e = self.edge_error(edge)
            adj = self.vertices[edge.vertex_to].estimate.inverse().adjoint()
            omega = edge.information
            blocks = [
                (index[vid], jac)
                for vid, jac in ((edge.vertex_from, -adj), (edge.vertex_to, adj))
                if vid in index
            ]
            for a, ja in blocks:
                gradient[6 * a : 6 * a + 6] -= ja.T @ omega @ e
                for c, jc in blocks:
                    rows.append((6 * a + _BLOCK_ROWS).ravel())
                    cols.append((6 * c + _BLOCK_COLS).ravel())
                    values.append((ja.T @ omega @ jc).ravel())
        if rows:
            hessian = coo_matrix(
                (np.concatenate(values), (np.concatenate(rows), np.concatenate(cols))),
                shape=(size, size),
            ).tocsc()
        else:
            hessian = coo_matrix((size, size)).tocsc()
        return hessian, gradient

    def optimize(self, iterations: int = DEFAULT_ITERATIONS) -> float:
        """Run up to ``iterations`` Levenberg-Marquardt steps; returns the final error."""
        free = [vid for vid, vertex in self.vertices.items() if not vertex.fixed]
        index = {vid: k for k, vid in enumerate(free)}
        chi2 = self.total_error()
        if not free or not self.edges:
            return chi2
        lam = None
        nu = 2.0
        for _ in range(iterations):
            hessian, gradient = self._linearize(index)
            if lam is None:
                diagonal = hessian.diagonal()
                lam = _TAU * float(diagonal.max()) if diagonal.size and diagonal.max() > 0 else _TAU
            improved = False
            for _ in range(_MAX_TRIALS):
                system = hessian + lam * identity(hessian.shape[0], format="csc")
                dx = np.atleast_1d(spsolve(system, gradient))
                if not np.all(np.isfinite(dx)):
                    lam *= nu
                    nu *= 2.0
                    continue
                backup = {vid: self.vertices[vid].estimate for vid in free}
                for vid, k in index.items():
                    vertex = self.vertices[vid]
                    vertex.estimate = SE3.exp(dx[6 * k : 6 * k + 6]) * vertex.estimate
                new_chi2 = self.total_error()
                if new_chi2 < chi2:
                    chi2 = new_chi2
                    lam = max(lam / 3.0, 1e-12)
                    nu = 2.0
                    improved = True
                    break
                for vid, estimate in backup.items():
                    self.vertices[vid].estimate = estimate
                lam *= nu
                nu *= 2.0
            if not improved:
                break
        return chi2

    def dump(self, stream: TextIO) -> None:
        """Write the graph in g2o text format."""
        for vertex in self.vertices.values():
            fields = [VERTEX_TAG, str(vertex.id), *_pose_fields(vertex.estimate)]
            stream.write(" ".join(fields) + "\n")
        for edge in self.edges:
            info = np.asarray(edge.information, dtype=float)[_UPPER]
            fields = [
                EDGE_TAG,
                str(edge.vertex_from),
                str(edge.vertex_to),
                *_pose_fields(edge.measurement),
                *(_fmt(v) for v in info),
            ]
            stream.write(" ".join(fields) + "\n")


def parse_g2o(lines: Iterable[str]) -> PoseGraph:
    """Build a pose graph from g2o text; records of other types are ignored."""
    graph = PoseGraph()
    for number, line in enumerate(lines, start=1):
        tokens = line.split()
        if not tokens:
            continue
        tag = tokens[0]
        try:
            if tag == VERTEX_TAG:
                if len(tokens) != 9:
                    raise ValueError("vertex needs an id and 7 values")
                vid = int(tokens[1])
                if vid in graph.vertices:
                    raise ValueError(f"duplicate vertex {vid}")
                graph.vertices[vid] = PoseVertex(vid, _parse_pose(tokens[2:9]), fixed=vid == 0)
            elif tag == EDGE_TAG:
                if len(tokens) != 31:
                    raise ValueError("edge needs 2 ids, 7 pose values and 21 information values")
                first, second = int(tokens[1]), int(tokens[2])
                for vid in (first, second):
                    if vid not in graph.vertices:
                        raise ValueError(f"unknown vertex {vid}")
                information = np.zeros((6, 6))
                information[_UPPER] = [float(t) for t in tokens[10:31]]
                information = information + np.triu(information, 1).T
                graph.edges.append(
                    PoseEdge(len(graph.edges), first, second, _parse_pose(tokens[3:10]), information)
                )
        except ValueError as exc:
            raise ValueError(f"line {number}: {exc}") from None
    return graph


def load_g2o(path) -> PoseGraph:
    """Read a g2o pose-graph file."""
    with open(path, encoding="utf-8") as handle:
        return parse_g2o(handle)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="pose_graph", description="Optimise an SE(3) pose graph in g2o format."
    )
    parser.add_argument("graph", nargs="?")
    parser.add_argument("-o", "--output", default="result_lie.g2o")
    parser.add_argument("-n", "--iterations", type=int, default=DEFAULT_ITERATIONS)
    args = parser.parse_args(argv)
    if args.graph is None:
        print("Usage: pose_graph sphere.g2o")
        return 1
    try:
        graph = load_g2o(args.graph)
    except FileNotFoundError:
        print(f"file {args.graph} does not exist.")
        return 1
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"read total {len(graph.vertices)} vertices, {len(graph.edges)} edges.")
    print("optimizing ...")
    before = graph.total_error()
    after = graph.optimize(args.iterations)
    print(f"error {before:g} -> {after:g}")
    print("saving optimization results ...")
    with open(args.output, "w", encoding="utf-8") as handle:
        graph.dump(handle)
    return 0


if __name__ == "__main__":
    sys.exit(main())