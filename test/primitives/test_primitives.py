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

"""Tests for procedural triangle meshes."""

import pytest
import torch

from meshlets import TriangleMesh
from meshlets.geometry import compute_triangle_cones
from meshlets.neighbors import build_triangle_adjacency
from meshlets.primitives import cube_surface, plane, torus, triangle_strip

### Helper Functions ###


def edge_use_counts(mesh: TriangleMesh) -> dict[tuple[int, int], int]:
    """Number of triangles using each undirected edge."""
    counts = {}
    for a, b, c in mesh.cells.tolist():
        for u, v in ((a, b), (b, c), (c, a)):
            key = (min(u, v), max(u, v))
            counts[key] = counts.get(key, 0) + 1
    return counts


class TestPrimitives:
    """Tests for the primitive mesh generators."""

    def test_cube_surface(self):
        mesh = cube_surface.load(size=2.0, center=(1.0, 0.0, 0.0))

        assert (mesh.n_points, mesh.n_cells) == (8, 12)
        assert torch.allclose(mesh.points.mean(dim=0), torch.tensor([1.0, 0.0, 0.0]))
        # Closed and manifold: every edge borders exactly two triangles.
        assert set(edge_use_counts(mesh).values()) == {2}

    def test_plane(self):
        mesh = plane.load(size=2.0, subdivisions=5)

        assert mesh.n_points == 36
        assert mesh.n_cells == 50
        cones, _ = compute_triangle_cones(mesh.cells, mesh.points)
        assert torch.allclose(cones.normals, torch.tensor([0.0, 0.0, 1.0]).expand(50, 3))

    def test_plane_with_normal(self):
        mesh = plane.load(subdivisions=3, normal=(1.0, 0.0, 0.0))
        assert torch.allclose(mesh.points[:, 0], torch.zeros(mesh.n_points), atol=1e-6)

    def test_plane_flipped_normal(self):
        mesh = plane.load(subdivisions=3, normal=(0.0, 0.0, -1.0))
        cones, _ = compute_triangle_cones(mesh.cells, mesh.points)
        assert torch.allclose(cones.normals[:, 2], -torch.ones(mesh.n_cells))

    def test_torus(self):
        mesh = torus.load(n_major=10, n_minor=5)

        assert (mesh.n_points, mesh.n_cells) == (50, 100)
        assert set(edge_use_counts(mesh).values()) == {2}
        adjacency = build_triangle_adjacency(mesh.cells, mesh.n_points)
        assert (adjacency.counts == 6).all()

    @pytest.mark.parametrize("n_triangles", [1, 2, 9])
    def test_triangle_strip(self, n_triangles):
        mesh = triangle_strip.load(n_triangles=n_triangles)

        assert mesh.n_points == n_triangles + 2
        assert mesh.n_cells == n_triangles
        cones, _ = compute_triangle_cones(mesh.cells, mesh.points)
        assert torch.allclose(cones.normals[:, 2], torch.ones(n_triangles))

    @pytest.mark.parametrize(
        "factory,kwargs",
        [
            (cube_surface.load, {"size": 0.0}),
            (plane.load, {"subdivisions": 0}),
            (torus.load, {"n_major": 2}),
            (torus.load, {"minor_radius": 2.0}),
            (triangle_strip.load, {"n_triangles": 0}),
        ],
    )
    def test_invalid_arguments_raise(self, factory, kwargs):
        with pytest.raises(ValueError):
            factory(**kwargs)


class TestTriangleMesh:
    """Tests for TriangleMesh validation."""

    def test_rejects_non_triangles(self):
        with pytest.raises(ValueError, match="cells"):
            TriangleMesh(
                points=torch.zeros(4, 3),
                cells=torch.zeros(2, 4, dtype=torch.long),
                batch_size=torch.Size([]),
            )

    def test_rejects_2d_points(self):
        with pytest.raises(ValueError, match="points"):
            TriangleMesh(
                points=torch.zeros(4, 2),
                cells=torch.zeros(2, 3, dtype=torch.long),
                batch_size=torch.Size([]),
            )

    def test_rejects_float_cells(self):
        with pytest.raises(TypeError, match="int-like"):
            TriangleMesh(
                points=torch.zeros(4, 3),
                cells=torch.zeros(2, 3),
                batch_size=torch.Size([]),
            )

    def test_build_meshlets_with_config(self):
        from meshlets import ClusterConfig

        mesh = torus.load(n_major=8, n_minor=4)
        meshlets = mesh.build_meshlets(ClusterConfig(max_vertices=8, max_triangles=8))
        assert (meshlets.vertex_counts <= 8).all()
        assert int(meshlets.triangle_counts.sum()) == mesh.n_cells
