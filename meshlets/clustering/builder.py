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

"""Greedy meshlet clustering.

A meshlet is grown one triangle at a time. The next triangle is preferably
one that shares a vertex with the meshlet and adds few new vertices; among
those, the one closest to the meshlet's centroid (and, with a non-zero cone
weight, best aligned with its average normal) is chosen. When the meshlet has
no unclaimed neighbors left, growth jumps to the unclaimed triangle whose
centroid is nearest to the meshlet centroid, found with a KD tree. A meshlet
is closed as soon as the next triangle would exceed either capacity limit.
"""

import logging
import math
import warnings

import torch

from meshlets.clustering._context import GrowthContext
from meshlets.clustering._meshlets import Meshlets
from meshlets.clustering._search import (
    expected_cluster_radius,
    find_neighbor_triangle,
)
from meshlets.config import ClusterConfig
from meshlets.geometry._cones import compute_triangle_cones
from meshlets.neighbors._adjacency import build_triangle_adjacency
from meshlets.spatial.kdtree import KDTree
from meshlets.utilities._inputs import as_index_tensor, as_position_tensor

logger = logging.getLogger(__name__)


def meshlet_bound(index_count: int, max_vertices: int, max_triangles: int) -> int:
    """Upper bound on the number of meshlets :class:`ClusterBuilder` produces.

    A meshlet closed for lack of vertex slots holds at least
    ``max_vertices - 2`` vertices, each referenced by at least one index of
    the meshlet; one closed for lack of triangle slots holds
    ``max_triangles`` triangles.

    Parameters
    ----------
    index_count : int
        Length of the flat index buffer.
    max_vertices, max_triangles : int
        Meshlet capacity.

    Returns
    -------
    int

    Raises
    ------
    ValueError
        If ``index_count`` is not a multiple of 3 or the capacity is invalid.
    """
    if index_count < 0 or index_count % 3 != 0:
        raise ValueError(
            f"index_count must be a non-negative multiple of 3, got {index_count=!r}"
        )
    if max_vertices < 3 or max_triangles < 1:
        raise ValueError(
            f"Meshlet capacity must satisfy max_vertices >= 3 and "
            f"max_triangles >= 1, got {max_vertices=!r}, {max_triangles=!r}"
        )

    triangle_count = index_count // 3
    by_vertices = math.ceil(index_count / (max_vertices - 2))
    by_triangles = math.ceil(triangle_count / max_triangles)
    return max(by_vertices, by_triangles)


class ClusterBuilder:
    """Partition a triangle mesh into meshlets.

    Parameters
    ----------
    config : ClusterConfig, optional
        Capacity and scoring parameters; defaults to :class:`ClusterConfig()`.

    Examples
    --------
    >>> import torch
    >>> positions = torch.tensor([[0.0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]])
    >>> indices = torch.tensor([0, 1, 2, 2, 1, 3])
    >>> meshlets = ClusterBuilder(ClusterConfig(max_vertices=8)).build(positions, indices)
    >>> meshlets.n_meshlets
    1
    >>> meshlets.to_index_buffer().tolist()
    [[0, 1, 2], [2, 1, 3]]
    """

    def __init__(self, config: ClusterConfig | None = None):
        self.config = config if config is not None else ClusterConfig()

    def build(self, positions, indices) -> Meshlets:
        """Cluster every triangle of a mesh into exactly one meshlet.

        Parameters
        ----------
        positions : array-like
            Vertex positions, flat xyz or shape ``(n_vertices, 3)``.
        indices : array-like of int
            Flat triangle index buffer, three vertex ids per triangle.

        Returns
        -------
        Meshlets

        Raises
        ------
        TypeError
            If positions are not floating point or indices are not integers.
        ValueError
            If the index buffer length is not a multiple of 3 or it references
            a vertex outside ``positions``.
        """
        config = self.config
        positions = as_position_tensor(positions)
        indices = as_index_tensor(indices)
        n_triangles = len(indices) // 3

        ### Validate vertex references before doing any work
        adjacency = build_triangle_adjacency(indices, len(positions))
        if n_triangles == 0:
            return Meshlets.empty_mesh(positions.dtype)

        ### Per-triangle geometry and spatial index
        cones, mesh_area = compute_triangle_cones(indices, positions)
        n_degenerate = int(cones.is_degenerate.sum())
        if n_degenerate:
            logger.debug(f"{n_degenerate} of {n_triangles} triangles have zero area")
        if mesh_area == 0:
            warnings.warn(
                f"Mesh of {n_triangles} triangles has zero total area; "
                "locality scoring falls back to a unit expected meshlet radius.",
                stacklevel=2,
            )
        tree = KDTree.from_cones(cones, leaf_size=config.leaf_size)

        ctx = GrowthContext.create(
            indices,
            cones,
            adjacency,
            max_vertices=config.max_vertices,
            max_triangles=config.max_triangles,
        )
        expected_radius = expected_cluster_radius(
            mesh_area, n_triangles, config.max_triangles
        )

        ### Greedy growth
        while True:
            triangle = self.next_triangle(ctx, tree, expected_radius)
            if triangle is None:
                break
            ctx.append_triangle(triangle)
            ctx.claim(triangle)

        if ctx.active.triangle_count > 0:
            ctx.finalize_cluster()

        logger.debug(
            f"Clustered {n_triangles} triangles into {len(ctx.clusters)} meshlets "
            f"(max_vertices={config.max_vertices}, "
            f"max_triangles={config.max_triangles})"
        )
        return _to_meshlets(ctx, positions.dtype)

    def next_triangle(
        self, ctx: GrowthContext, tree: KDTree, expected_radius: float
    ) -> int | None:
        """Choose the triangle to add next, or None once all are claimed.

        A scored neighbor is taken if it fits the active meshlet. If it does
        not, the neighbor that best completes the meshlet's fan is taken
        instead; it opens a new meshlet if it does not fit either. Without
        neighbors, the unclaimed triangle nearest to the meshlet centroid is
        taken.
        """
        cone = ctx.current_cone()
        triangle, extra = find_neighbor_triangle(
            ctx, cone, self.config.cone_weight, expected_radius
        )

        if triangle is not None and ctx.would_overflow(extra):
            triangle, _ = find_neighbor_triangle(ctx, None, 0.0, expected_radius)

        if triangle is None:
            triangle = tree.nearest_unclaimed(cone.centroid, ctx.claimed)

        return triangle


def _to_meshlets(ctx: GrowthContext, dtype: torch.dtype) -> Meshlets:
    """Copy the finished host tables of a growth run into a :class:`Meshlets`."""
    clusters = ctx.clusters

    def column(name):
        return torch.tensor([getattr(c, name) for c in clusters], dtype=torch.long)

    cones = torch.tensor(ctx.cluster_cones, dtype=dtype).reshape(-1, 7)
    return Meshlets(
        vertex_offsets=column("vertex_offset"),
        triangle_offsets=column("triangle_offset"),
        vertex_counts=column("vertex_count"),
        triangle_counts=column("triangle_count"),
        vertices=torch.tensor(ctx.cluster_vertices, dtype=torch.long),
        triangles=torch.tensor(ctx.cluster_triangles, dtype=torch.long).reshape(-1, 3),
        source_triangles=torch.tensor(ctx.source_triangles, dtype=torch.long),
        cone_centroids=cones[:, 0:3],
        cone_normals=cones[:, 3:6],
        cone_areas=cones[:, 6],
        batch_size=torch.Size([]),
    )


def build_meshlets(
    positions,
    indices,
    max_vertices: int = 64,
    max_triangles: int = 124,
    cone_weight: float = 0.0,
    leaf_size: int = 8,
) -> Meshlets:
    """Partition a triangle mesh into meshlets.

    Convenience wrapper around :class:`ClusterBuilder`; see
    :meth:`ClusterBuilder.build`.

    Raises
    ------
    pydantic.ValidationError
        If the capacity or scoring parameters are out of range.
    """
    config = ClusterConfig(
        max_vertices=max_vertices,
        max_triangles=max_triangles,
        cone_weight=cone_weight,
        leaf_size=leaf_size,
    )
    return ClusterBuilder(config).build(positions, indices)
