# SPDX-FileCopyrightText: Copyright (c) 2023 - 2026 NVIDIA CORPORATION & AFFILIATES.
# SPDX-FileCopyrightText: All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""KD tree over triangle centroids for nearest-unclaimed-triangle queries.

The tree is stored as a flat, pre-sized array of nodes. A branch's left child
is stored immediately after it and its right child immediately after the left
subtree, so a branch only records the size of its left subtree. Both
construction and queries use an explicit work stack, which keeps meshes with
many coincident centroids from exhausting the interpreter's recursion limit.

Split selection follows the classic variance heuristic: the axis with the
largest centroid variance is split at the centroid mean. Mean and variance are
accumulated in a single pass with Welford's algorithm, which stays stable for
coordinates far from the origin.
"""

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import torch

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class KDBranch:
    """Internal node splitting its triangles at ``split`` along ``axis``."""

    axis: int  # 0, 1 or 2
    split: float
    left_size: int  # number of nodes in the left subtree


@dataclass(frozen=True, slots=True)
class KDLeaf:
    """Terminal node listing its triangle ids."""

    triangles: tuple[int, ...]


KDNode = KDBranch | KDLeaf


def _welford_statistics(
    centroids: Sequence[Sequence[float]], ids: list[int], start: int, end: int
) -> tuple[list[float], list[float]]:
    """Single-pass per-axis mean and sum of squared deviations over ``ids[start:end]``."""
    mean = [0.0, 0.0, 0.0]
    m2 = [0.0, 0.0, 0.0]
    for n, i in enumerate(range(start, end), start=1):
        inv_n = 1.0 / n
        point = centroids[ids[i]]
        for axis in range(3):
            delta = point[axis] - mean[axis]
            mean[axis] += delta * inv_n
            m2[axis] += delta * (point[axis] - mean[axis])
    return mean, m2


def _partition(
    centroids: Sequence[Sequence[float]],
    ids: list[int],
    start: int,
    end: int,
    axis: int,
    pivot: float,
) -> int:
    """Move ids whose centroid lies below ``pivot`` to the front of the range.

    Returns the number of ids moved to the front.
    """
    middle = start
    for i in range(start, end):
        if centroids[ids[i]][axis] < pivot:
            ids[middle], ids[i] = ids[i], ids[middle]
            middle += 1
    return middle - start


class KDTree:
    """Balanced KD tree over triangle centroids.

    Parameters
    ----------
    nodes : list[KDNode]
        Flat node array; node 0 is the root.
    centroids : list[tuple[float, float, float]]
        Centroid of every triangle, indexed by triangle id.

    Examples
    --------
    >>> tree = KDTree.from_centroids(torch.rand(100, 3), leaf_size=8)
    >>> claimed = [False] * 100
    >>> tree.nearest_unclaimed((0.5, 0.5, 0.5), claimed) is not None
    True
    """

    def __init__(self, nodes: list[KDNode], centroids: list[tuple[float, ...]]):
        self.nodes = nodes
        self.centroids = centroids

    @property
    def n_nodes(self) -> int:
        """Number of nodes in the tree."""
        return len(self.nodes)

    @property
    def n_triangles(self) -> int:
        """Number of triangles indexed by the tree."""
        return len(self.centroids)

    def leaves(self) -> list[KDLeaf]:
        """All leaves in storage order."""
        return [node for node in self.nodes if isinstance(node, KDLeaf)]

    @classmethod
    def from_cones(cls, cones, leaf_size: int = 8) -> "KDTree":
        """Build a tree over the centroids of a :class:`~meshlets.geometry.Cones` batch."""
        return cls.from_centroids(cones.centroids, leaf_size=leaf_size)

    @classmethod
    def from_centroids(cls, centroids, leaf_size: int = 8) -> "KDTree":
        """Build a tree over triangle centroids.

        Parameters
        ----------
        centroids : torch.Tensor or sequence
            Shape ``(n_triangles, 3)``.
        leaf_size : int, optional
            Maximum number of triangles in a leaf. A node whose split would
            leave ``leaf_size / 2`` or fewer triangles on one side also
            becomes a leaf, so leaves of coincident centroids can be larger.

        Returns
        -------
        KDTree

        Raises
        ------
        ValueError
            If ``leaf_size < 1``.
        RuntimeError
            If construction would overflow the pre-sized node array. This
            indicates a bug, not bad input.
        """
        if leaf_size < 1:
            raise ValueError(f"leaf_size must be >= 1, got {leaf_size=!r}")

        if isinstance(centroids, torch.Tensor):
            centroids = centroids.detach().cpu().tolist()
        points = [tuple(float(x) for x in point) for point in centroids]
        n_triangles = len(points)
        if n_triangles == 0:
            return cls([], points)

        ids = list(range(n_triangles))
        half_leaf = leaf_size / 2

        ### Pre-size the node array
        # Every split leaves at least one triangle on each side, so there are
        # at most n leaves and n - 1 branches.
        capacity = 2 * n_triangles - 1
        nodes: list[KDNode | None] = [None] * capacity
        node_count = 0

        # Work items are (start, end, parent): the id range [start, end) and,
        # for right children, the branch whose left subtree has just been
        # completed (-1 otherwise).
        stack = [(0, n_triangles, -1)]
        n_forced_leaves = 0

        while stack:
            start, end, parent = stack.pop()

            node_id = node_count
            if node_id >= capacity:
                raise RuntimeError(
                    f"KD tree node array overflow: {capacity=} for {n_triangles=}"
                )
            node_count += 1

            if parent >= 0:
                # The left subtree occupies every node between parent and here.
                branch = nodes[parent]
                nodes[parent] = KDBranch(branch.axis, branch.split, node_id - parent - 1)

            count = end - start
            if count <= leaf_size:
                nodes[node_id] = KDLeaf(tuple(ids[start:end]))
                continue

            mean, m2 = _welford_statistics(points, ids, start, end)
            if m2[0] >= m2[1] and m2[0] >= m2[2]:
                axis = 0
            elif m2[1] >= m2[2]:
                axis = 1
            else:
                axis = 2
            split = mean[axis]

            middle = _partition(points, ids, start, end, axis, split)
            if middle <= half_leaf or middle >= count - half_leaf:
                nodes[node_id] = KDLeaf(tuple(ids[start:end]))
                n_forced_leaves += 1
                continue

            nodes[node_id] = KDBranch(axis, split, 0)
            stack.append((start + middle, end, node_id))
            stack.append((start, start + middle, -1))

        if n_forced_leaves:
            logger.debug(
                f"KD tree: {n_forced_leaves} degenerate splits turned into leaves "
                f"({n_triangles=}, {leaf_size=})"
            )

        return cls(nodes[:node_count], points)

    def nearest_unclaimed(self, point: Sequence[float], claimed) -> int | None:
        """Find the unclaimed triangle whose centroid is closest to ``point``.

        Branch-and-bound search: the child whose half-space contains the
        point is searched first, and the sibling only if the splitting plane
        is closer than the best centroid found so far.

        Parameters
        ----------
        point : sequence of float
            Query position ``(x, y, z)``.
        claimed : sequence of bool
            ``claimed[t]`` is True for triangles already assigned to a
            meshlet; they are skipped.

        Returns
        -------
        int or None
            Triangle id, or None if every triangle is claimed. Among equally
            distant triangles the first one reached wins.
        """
        if not self.nodes:
            return None

        px, py, pz = (float(x) for x in point)
        query = (px, py, pz)
        nodes = self.nodes
        centroids = self.centroids

        best = None
        best_distance2 = math.inf

        # (node id, squared distance from the query to the node's half-space)
        stack = [(0, 0.0)]
        while stack:
            node_id, plane_distance2 = stack.pop()
            if plane_distance2 >= best_distance2:
                continue

            node = nodes[node_id]
            if isinstance(node, KDLeaf):
                for triangle in node.triangles:
                    if claimed[triangle]:
                        continue
                    cx, cy, cz = centroids[triangle]
                    distance2 = (cx - px) ** 2 + (cy - py) ** 2 + (cz - pz) ** 2
                    if distance2 < best_distance2:
                        best = triangle
                        best_distance2 = distance2
                continue

            delta = query[node.axis] - node.split
            left = node_id + 1
            right = left + node.left_size
            first, second = (left, right) if delta <= 0 else (right, left)

            stack.append((second, delta * delta))
            stack.append((first, 0.0))

        return best
