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

"""Tests for the mutable state of a clustering run."""

import math

import pytest
import torch

from meshlets.clustering import (
    UNUSED,
    Cluster,
    Cone,
    GrowthContext,
    cluster_cone,
)
from meshlets.geometry import compute_triangle_cones
from meshlets.neighbors import build_triangle_adjacency

### Helper Functions ###


def make_context(
    positions, indices, max_vertices: int = 64, max_triangles: int = 124
) -> GrowthContext:
    indices = torch.as_tensor(indices)
    cones, _ = compute_triangle_cones(indices, positions)
    adjacency = build_triangle_adjacency(indices, len(positions))
    return GrowthContext.create(indices, cones, adjacency, max_vertices, max_triangles)


### Cone Tests ###


class TestClusterCone:
    """Tests for turning accumulated cones into a meshlet cone."""

    def test_empty_cluster_is_zero(self):
        assert cluster_cone([0.0] * 7, 0) == Cone(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    def test_mean_centroid_and_normalized_axis(self):
        cone = cluster_cone([2.0, 4.0, 6.0, 0.0, 3.0, 4.0, 5.0], 2)

        assert cone.centroid == (1.0, 2.0, 3.0)
        assert (cone.nx, cone.ny, cone.nz) == pytest.approx((0.0, 0.6, 0.8))
        assert cone.area == 5.0

    def test_cancelling_normals_give_zero_axis(self):
        cone = cluster_cone([1.0, 1.0, 1.0, 0.0, 0.0, 0.0, 2.0], 2)
        assert (cone.nx, cone.ny, cone.nz) == (0.0, 0.0, 0.0)


### Append / Finalize Tests ###


class TestAppendTriangle:
    """Tests for GrowthContext.append_triangle."""

    def test_assigns_local_slots_in_order(self, two_triangles):
        positions, indices = two_triangles
        ctx = make_context(positions, indices)

        assert not ctx.append_triangle(0)
        assert not ctx.append_triangle(1)

        assert ctx.cluster_vertices == [0, 1, 2, 3]
        assert ctx.cluster_triangles == [0, 1, 2, 2, 1, 3]
        assert ctx.source_triangles == [0, 1]
        assert (ctx.active.vertex_count, ctx.active.triangle_count) == (4, 2)
        assert ctx.used == [0, 1, 2, 3]

    def test_repeated_vertex_takes_one_slot(self):
        positions = torch.rand(2, 3)
        ctx = make_context(positions, [0, 0, 1])

        ctx.append_triangle(0)

        assert ctx.cluster_vertices == [0, 1]
        assert ctx.cluster_triangles == [0, 0, 1]
        assert ctx.active.vertex_count == 2

    def test_vertex_overflow_finalizes_first(self, two_triangles):
        positions, indices = two_triangles
        ctx = make_context(positions, indices, max_vertices=3)

        ctx.append_triangle(0)
        assert ctx.append_triangle(1)

        assert ctx.clusters == [Cluster(0, 0, 3, 1)]
        # The second triangle starts from scratch, so all its vertices are new.
        assert ctx.cluster_vertices == [0, 1, 2, 2, 1, 3]
        assert ctx.cluster_triangles == [0, 1, 2, 0, 1, 2]
        assert (ctx.active.vertex_offset, ctx.active.triangle_offset) == (3, 1)
        assert (ctx.active.vertex_count, ctx.active.triangle_count) == (3, 1)
        assert ctx.used[0] == UNUSED

    def test_triangle_overflow_finalizes_first(self, two_triangles):
        positions, indices = two_triangles
        ctx = make_context(positions, indices, max_triangles=1)

        ctx.append_triangle(0)
        assert ctx.append_triangle(1)
        assert ctx.clusters == [Cluster(0, 0, 3, 1)]

    def test_exact_fit_does_not_finalize(self, two_triangles):
        positions, indices = two_triangles
        ctx = make_context(positions, indices, max_vertices=4, max_triangles=2)

        ctx.append_triangle(0)
        assert not ctx.append_triangle(1)
        assert ctx.clusters == []


class TestFinalizeCluster:
    """Tests for GrowthContext.finalize_cluster."""

    def test_records_cluster_and_cone(self, two_triangles):
        positions, indices = two_triangles
        ctx = make_context(positions, indices)

        ctx.append_triangle(0)
        ctx.claim(0)
        cluster = ctx.finalize_cluster()

        assert cluster == Cluster(0, 0, 3, 1)
        assert len(ctx.cluster_cones) == 1
        cone = ctx.cluster_cones[0]
        assert cone.centroid == pytest.approx((1 / 3, 1 / 3, 0.0))
        assert (cone.nx, cone.ny, cone.nz) == pytest.approx((0.0, 0.0, 1.0))

    def test_resets_active_state(self, two_triangles):
        positions, indices = two_triangles
        ctx = make_context(positions, indices)

        ctx.append_triangle(0)
        ctx.claim(0)
        ctx.finalize_cluster()

        assert ctx.used == [UNUSED] * 4
        assert ctx.cone_accumulator == [0.0] * 7
        assert ctx.current_cone().centroid == (0.0, 0.0, 0.0)
        assert (ctx.active.vertex_offset, ctx.active.triangle_offset) == (3, 1)


### Claim Tests ###


class TestClaim:
    """Tests for GrowthContext.claim."""

    def test_retires_triangle_everywhere(self, two_triangles):
        positions, indices = two_triangles
        ctx = make_context(positions, indices)

        ctx.claim(0)

        assert ctx.claimed == [True, False]
        assert ctx.live_triangles == [0, 1, 1, 1]
        assert ctx.adjacency_counts == [0, 1, 1, 1]
        for vertex in (1, 2):
            start = ctx.adjacency_offsets[vertex]
            assert ctx.adjacency_data[start : start + ctx.adjacency_counts[vertex]] == [1]

    def test_accumulates_cone(self, two_triangles):
        positions, indices = two_triangles
        ctx = make_context(positions, indices)

        ctx.append_triangle(0)
        ctx.claim(0)
        ctx.append_triangle(1)
        ctx.claim(1)

        cone = ctx.current_cone()
        assert cone.centroid == pytest.approx((0.5, 0.5, 0.0))
        assert cone.area == pytest.approx(2.0)
        assert math.isclose(cone.nz, 1.0)

    def test_would_overflow(self, two_triangles):
        positions, indices = two_triangles
        ctx = make_context(positions, indices, max_vertices=4, max_triangles=2)

        ctx.append_triangle(0)
        assert not ctx.would_overflow(1)
        assert ctx.would_overflow(2)
