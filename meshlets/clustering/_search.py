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

"""Local candidate search for greedy meshlet growth."""

import math

from meshlets.clustering._context import UNUSED, Cone, GrowthContext

# Larger than any reachable extra cost (at most 3 new vertices + 1).
_NO_EXTRA = 5


def cluster_score(
    distance2: float, spread: float, cone_weight: float, expected_radius: float
) -> float:
    """Combined locality and flatness penalty of a candidate; lower is better.

    Parameters
    ----------
    distance2 : float
        Squared distance between the candidate centroid and the meshlet
        centroid.
    spread : float
        Dot product of the candidate normal and the meshlet normal.
    cone_weight : float
        Balance between locality (0) and normal alignment (1).
    expected_radius : float
        Expected meshlet radius used to normalize the distance.
    """
    cone = max(1.0 - spread * cone_weight, 1e-3)
    return (1.0 + math.sqrt(distance2) / expected_radius * (1.0 - cone_weight)) * cone


def expected_cluster_radius(
    mesh_area: float, n_triangles: int, max_triangles: int
) -> float:
    """Radius of a full meshlet assuming it covers a roughly square patch.

    Falls back to 1.0 when the mesh has no area, so that scoring never
    divides by zero.
    """
    if n_triangles == 0:
        return 1.0
    triangle_area_avg = mesh_area / n_triangles * 0.5
    radius = math.sqrt(triangle_area_avg * max_triangles) * 0.5
    return radius if radius > 0 else 1.0


def find_neighbor_triangle(
    ctx: GrowthContext,
    cone: Cone | None,
    cone_weight: float,
    expected_radius: float,
) -> tuple[int | None, int]:
    """Pick the best unclaimed triangle adjacent to the active meshlet.

    Every live triangle incident to a vertex of the active meshlet is a
    candidate. Its ``extra`` cost is the number of its vertices not yet in
    the meshlet, plus one whenever that number is non-zero. A candidate with
    a vertex on its last live triangle costs only the flat 1, so triangles
    about to be orphaned are picked up first.

    With a ``cone``, candidates are scored by :func:`cluster_score`;
    without one, by how close their vertices are to running out of live
    triangles. A candidate replaces the current best if its extra cost is
    lower *or* its score is lower.

    Returns
    -------
    tuple[int | None, int]
        ``(triangle, extra)``; ``triangle`` is None if the meshlet has no
        live neighbors.
    """
    indices = ctx.indices
    used = ctx.used
    live = ctx.live_triangles
    counts = ctx.adjacency_counts
    offsets = ctx.adjacency_offsets
    data = ctx.adjacency_data
    cones = ctx.cones
    active = ctx.active

    best_triangle = None
    best_extra = _NO_EXTRA
    best_score = math.inf

    first_slot = active.vertex_offset
    for vertex in ctx.cluster_vertices[first_slot : first_slot + active.vertex_count]:
        start = offsets[vertex]
        for triangle in data[start : start + counts[vertex]]:
            i = 3 * triangle
            a = indices[i]
            b = indices[i + 1]
            c = indices[i + 2]

            extra = (used[a] == UNUSED) + (used[b] == UNUSED) + (used[c] == UNUSED)
            if extra != 0:
                # last chance to attach a vertex that would otherwise be orphaned
                if live[a] == 1 or live[b] == 1 or live[c] == 1:
                    extra = 0
                extra += 1

            if extra > best_extra:
                continue

            if cone is None:
                score = live[a] + live[b] + live[c] - 3
            else:
                tri = cones[triangle]
                distance2 = (
                    (tri.cx - cone.cx) ** 2
                    + (tri.cy - cone.cy) ** 2
                    + (tri.cz - cone.cz) ** 2
                )
                spread = tri.nx * cone.nx + tri.ny * cone.ny + tri.nz * cone.nz
                score = cluster_score(distance2, spread, cone_weight, expected_radius)

            if extra < best_extra or score < best_score:
                best_triangle = triangle
                best_extra = extra
                best_score = score

    return best_triangle, best_extra
