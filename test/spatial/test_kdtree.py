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

"""Tests for the KD tree over triangle centroids.

Nearest-unclaimed queries are validated against a linear scan.
"""

import pytest
import torch

from meshlets.geometry import compute_triangle_cones
from meshlets.primitives import torus
from meshlets.spatial import KDBranch, KDLeaf, KDTree

### Helper Functions ###


def linear_scan_distance2(centroids: list, point, claimed: list[bool]) -> float | None:
    """Squared distance to the closest unclaimed centroid, by brute force."""
    best = None
    for triangle, (cx, cy, cz) in enumerate(centroids):
        if claimed[triangle]:
            continue
        distance2 = (cx - point[0]) ** 2 + (cy - point[1]) ** 2 + (cz - point[2]) ** 2
        if best is None or distance2 < best:
            best = distance2
    return best


def distance2_to(tree: KDTree, triangle: int, point) -> float:
    cx, cy, cz = tree.centroids[triangle]
    return (cx - point[0]) ** 2 + (cy - point[1]) ** 2 + (cz - point[2]) ** 2


### Construction Tests ###


class TestKDTreeConstruction:
    """Tests for KDTree.from_centroids."""

    def test_every_triangle_in_exactly_one_leaf(self):
        tree = KDTree.from_centroids(torch.rand(500, 3), leaf_size=8)

        leaf_triangles = [t for leaf in tree.leaves() for t in leaf.triangles]
        assert sorted(leaf_triangles) == list(range(500))

    def test_node_count_within_capacity(self):
        n = 300
        tree = KDTree.from_centroids(torch.rand(n, 3), leaf_size=4)
        assert tree.n_nodes <= 2 * n - 1
        assert tree.n_triangles == n

    def test_branch_left_size_addresses_right_child(self):
        """The right child of a branch starts right after its left subtree."""
        tree = KDTree.from_centroids(torch.rand(200, 3), leaf_size=4)

        def subtree_size(node_id: int) -> int:
            node = tree.nodes[node_id]
            if isinstance(node, KDLeaf):
                return 1
            left = node_id + 1
            return 1 + subtree_size(left) + subtree_size(left + node.left_size)

        for node_id, node in enumerate(tree.nodes):
            if isinstance(node, KDBranch):
                assert node.left_size == subtree_size(node_id + 1)
        assert subtree_size(0) == tree.n_nodes

    def test_branches_split_their_triangles(self):
        """Left subtree centroids lie below the split, right ones at or above."""
        tree = KDTree.from_centroids(torch.rand(200, 3), leaf_size=4)

        def triangles_under(node_id: int) -> list[int]:
            node = tree.nodes[node_id]
            if isinstance(node, KDLeaf):
                return list(node.triangles)
            left = node_id + 1
            return triangles_under(left) + triangles_under(left + node.left_size)

        for node_id, node in enumerate(tree.nodes):
            if not isinstance(node, KDBranch):
                continue
            left = node_id + 1
            right = left + node.left_size
            assert all(
                tree.centroids[t][node.axis] < node.split for t in triangles_under(left)
            )
            assert all(
                tree.centroids[t][node.axis] >= node.split
                for t in triangles_under(right)
            )

    def test_splits_along_axis_of_largest_spread(self):
        centroids = torch.rand(100, 3) * torch.tensor([1.0, 10.0, 0.1])
        tree = KDTree.from_centroids(centroids, leaf_size=8)

        root = tree.nodes[0]
        assert isinstance(root, KDBranch)
        assert root.axis == 1

    def test_small_input_is_single_leaf(self):
        tree = KDTree.from_centroids(torch.rand(5, 3), leaf_size=8)
        assert tree.nodes == [KDLeaf((0, 1, 2, 3, 4))]

    @pytest.mark.parametrize("n", [100, 1000])
    def test_coincident_centroids_become_one_leaf(self, n):
        """Identical centroids cannot be split and must not recurse forever."""
        tree = KDTree.from_centroids(torch.ones(n, 3), leaf_size=8)
        assert tree.n_nodes == 1
        assert len(tree.nodes[0].triangles) == n

    def test_empty_input(self):
        tree = KDTree.from_centroids(torch.empty(0, 3))
        assert tree.n_nodes == 0
        assert tree.nearest_unclaimed((0.0, 0.0, 0.0), []) is None

    def test_invalid_leaf_size_raises(self):
        with pytest.raises(ValueError, match="leaf_size"):
            KDTree.from_centroids(torch.rand(10, 3), leaf_size=0)

    def test_from_cones(self):
        mesh = torus.load(n_major=8, n_minor=4)
        cones, _ = compute_triangle_cones(mesh.cells, mesh.points)
        tree = KDTree.from_cones(cones, leaf_size=4)
        assert tree.n_triangles == mesh.n_cells


### Query Tests ###


class TestNearestUnclaimed:
    """Tests for KDTree.nearest_unclaimed."""

    @pytest.mark.parametrize("leaf_size", [1, 4, 8, 16])
    def test_matches_linear_scan(self, leaf_size):
        centroids = torch.rand(200, 3)
        tree = KDTree.from_centroids(centroids, leaf_size=leaf_size)

        for _ in range(50):
            point = torch.rand(3).tolist()
            claimed = (torch.rand(200) < 0.5).tolist()

            found = tree.nearest_unclaimed(point, claimed)
            expected = linear_scan_distance2(tree.centroids, point, claimed)

            assert found is not None
            assert not claimed[found]
            assert distance2_to(tree, found, point) == expected

    def test_query_outside_bounds(self):
        centroids = torch.rand(150, 3)
        tree = KDTree.from_centroids(centroids, leaf_size=8)
        claimed = [False] * 150

        point = (5.0, -3.0, 2.0)
        found = tree.nearest_unclaimed(point, claimed)
        assert distance2_to(tree, found, point) == linear_scan_distance2(
            tree.centroids, point, claimed
        )

    def test_skips_claimed_triangles(self):
        centroids = torch.tensor([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [5.0, 0.0, 0.0]])
        tree = KDTree.from_centroids(centroids, leaf_size=1)

        assert tree.nearest_unclaimed((0.0, 0.0, 0.0), [False, False, False]) == 0
        assert tree.nearest_unclaimed((0.0, 0.0, 0.0), [True, False, False]) == 1
        assert tree.nearest_unclaimed((0.0, 0.0, 0.0), [True, True, False]) == 2

    def test_all_claimed_returns_none(self):
        tree = KDTree.from_centroids(torch.rand(40, 3), leaf_size=4)
        assert tree.nearest_unclaimed((0.5, 0.5, 0.5), [True] * 40) is None

    def test_ties_resolve_to_first_found(self):
        """Equally distant centroids in one leaf resolve to the earlier one."""
        centroids = torch.tensor([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]])
        tree = KDTree.from_centroids(centroids, leaf_size=8)
        assert tree.nearest_unclaimed((0.0, 0.0, 0.0), [False, False]) == 0
