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

"""Mutable state of one meshlet clustering run.

All per-run bookkeeping (used vertex slots, live triangle counts, claimed
flags, the shared output tables and the meshlet being grown) lives in a single
:class:`GrowthContext`, so individual growth steps can be driven and inspected
in isolation.

The greedy loop is inherently sequential and touches a handful of scalars per
candidate, so the context holds plain Python lists rather than tensors.
"""

import math
from dataclasses import dataclass, field
from typing import NamedTuple

import torch

from meshlets.geometry._cones import Cones
from meshlets.neighbors._adjacency import TriangleAdjacency, swap_remove

UNUSED = -1  # used-slot sentinel: vertex is not part of the active meshlet


@dataclass(frozen=True)
class Cluster:
    """A finalized meshlet: windows into the shared vertex and triangle tables.

    ``vertex_offset``/``vertex_count`` address the vertex table and
    ``triangle_offset``/``triangle_count`` address triangle rows (three local
    indices each) of the triangle table.
    """

    vertex_offset: int = 0
    triangle_offset: int = 0
    vertex_count: int = 0
    triangle_count: int = 0


@dataclass
class ActiveCluster:
    """The meshlet currently being grown."""

    vertex_offset: int = 0
    triangle_offset: int = 0
    vertex_count: int = 0
    triangle_count: int = 0

    def freeze(self) -> Cluster:
        return Cluster(
            self.vertex_offset,
            self.triangle_offset,
            self.vertex_count,
            self.triangle_count,
        )


class Cone(NamedTuple):
    """Centroid, normal and area of a single triangle or meshlet."""

    cx: float
    cy: float
    cz: float
    nx: float
    ny: float
    nz: float
    area: float

    @property
    def centroid(self) -> tuple[float, float, float]:
        return (self.cx, self.cy, self.cz)


def cluster_cone(accumulated: list[float], triangle_count: int) -> Cone:
    """Turn accumulated triangle cones into a meshlet cone.

    The centroid is the mean triangle centroid (zero for an empty meshlet),
    the normal is the normalized sum of triangle normals (zero if the sum
    vanishes) and the area is the summed raw area.
    """
    cx, cy, cz, nx, ny, nz, area = accumulated
    center_scale = 0.0 if triangle_count == 0 else 1.0 / triangle_count

    axis_length2 = nx * nx + ny * ny + nz * nz
    axis_scale = 0.0 if axis_length2 == 0 else 1.0 / math.sqrt(axis_length2)

    return Cone(
        cx * center_scale,
        cy * center_scale,
        cz * center_scale,
        nx * axis_scale,
        ny * axis_scale,
        nz * axis_scale,
        area,
    )


@dataclass
class GrowthContext:
    """Everything the greedy growth loop reads and mutates.

    Attributes
    ----------
    indices : list[int]
        Flat triangle index buffer.
    cones : list[Cone]
        Per-triangle cones.
    adjacency_counts, adjacency_offsets, adjacency_data : list[int]
        Host copy of the vertex-to-triangle CSR adjacency. Claimed triangles
        are swap-removed from it.
    live_triangles : list[int]
        Unclaimed incident triangles per vertex, used for scoring.
    used : list[int]
        Local slot of each vertex in the active meshlet, or ``UNUSED``.
    claimed : list[bool]
        Per-triangle assignment flag.
    max_vertices, max_triangles : int
        Meshlet capacity.
    """

    indices: list[int]
    cones: list[Cone]
    adjacency_counts: list[int]
    adjacency_offsets: list[int]
    adjacency_data: list[int]
    live_triangles: list[int]
    used: list[int]
    claimed: list[bool]
    max_vertices: int
    max_triangles: int
    active: ActiveCluster = field(default_factory=ActiveCluster)
    clusters: list[Cluster] = field(default_factory=list)
    cluster_cones: list[Cone] = field(default_factory=list)
    cluster_vertices: list[int] = field(default_factory=list)
    cluster_triangles: list[int] = field(default_factory=list)  # 3 local ids per row
    source_triangles: list[int] = field(default_factory=list)
    cone_accumulator: list[float] = field(default_factory=lambda: [0.0] * 7)

    @classmethod
    def create(
        cls,
        indices: torch.Tensor,
        cones: Cones,
        adjacency: TriangleAdjacency,
        max_vertices: int,
        max_triangles: int,
    ) -> "GrowthContext":
        """Copy the inputs to host lists and initialize the per-run state."""
        n_vertices = adjacency.n_vertices
        n_triangles = len(indices) // 3

        centroids = cones.centroids.tolist()
        normals = cones.normals.tolist()
        areas = cones.areas.tolist()
        triangle_cones = [Cone(*c, *n, a) for c, n, a in zip(centroids, normals, areas)]

        counts = adjacency.counts.tolist()
        return cls(
            indices=indices.tolist(),
            cones=triangle_cones,
            adjacency_counts=counts,
            adjacency_offsets=adjacency.offsets.tolist(),
            adjacency_data=adjacency.data.tolist(),
            live_triangles=list(counts),
            used=[UNUSED] * n_vertices,
            claimed=[False] * n_triangles,
            max_vertices=max_vertices,
            max_triangles=max_triangles,
        )

    def triangle(self, t: int) -> tuple[int, int, int]:
        i = 3 * t
        return self.indices[i], self.indices[i + 1], self.indices[i + 2]

    def current_cone(self) -> Cone:
        """Cone of the active meshlet."""
        return cluster_cone(self.cone_accumulator, self.active.triangle_count)

    def would_overflow(self, extra: int) -> bool:
        """Whether ``extra`` new vertices or one more triangle exceed capacity."""
        active = self.active
        return (
            active.vertex_count + extra > self.max_vertices
            or active.triangle_count >= self.max_triangles
        )

    def finalize_cluster(self) -> Cluster:
        """Freeze the active meshlet and start an empty one right after it.

        The meshlet's cone is recorded alongside it and the cone accumulator
        is cleared for the next meshlet.
        """
        active = self.active
        cluster = active.freeze()
        self.clusters.append(cluster)
        self.cluster_cones.append(self.current_cone())
        self.cone_accumulator = [0.0] * 7

        used = self.used
        start = active.vertex_offset
        for vertex in self.cluster_vertices[start : start + active.vertex_count]:
            used[vertex] = UNUSED

        active.vertex_offset += active.vertex_count
        active.triangle_offset += active.triangle_count
        active.vertex_count = 0
        active.triangle_count = 0
        return cluster

    def append_triangle(self, t: int) -> bool:
        """Add triangle ``t`` to the active meshlet.

        If the triangle's unused vertices or one more triangle would exceed
        capacity, the active meshlet is finalized first and ``t`` opens a new
        one.

        Returns
        -------
        bool
            True if a meshlet was finalized to make room.
        """
        a, b, c = self.triangle(t)
        used = self.used
        extra = (used[a] == UNUSED) + (used[b] == UNUSED) + (used[c] == UNUSED)

        finalized = False
        if self.would_overflow(extra):
            self.finalize_cluster()
            finalized = True

        active = self.active
        local = []
        for vertex in (a, b, c):
            slot = used[vertex]
            if slot == UNUSED:
                slot = active.vertex_count
                used[vertex] = slot
                self.cluster_vertices.append(vertex)
                active.vertex_count += 1
            local.append(slot)

        self.cluster_triangles.extend(local)
        self.source_triangles.append(t)
        active.triangle_count += 1
        return finalized

    def claim(self, t: int) -> None:
        """Retire triangle ``t`` from every live structure and fold in its cone."""
        counts = self.adjacency_counts
        offsets = self.adjacency_offsets
        data = self.adjacency_data
        live = self.live_triangles

        for vertex in self.triangle(t):
            live[vertex] -= 1
            swap_remove(counts, offsets, data, vertex, t)

        cone = self.cones[t]
        acc = self.cone_accumulator
        for k in range(7):
            acc[k] += cone[k]

        self.claimed[t] = True
