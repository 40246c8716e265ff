"""Visual SLAM building blocks: Lie groups, geometry, depth filtering, point clouds, pose graphs, map structures and feature tracking."""

__version__ = "0.1.0"