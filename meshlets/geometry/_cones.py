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

"""Per-triangle cones: centroid, unit normal and raw area.

A cone summarizes where a triangle (or a whole meshlet) sits and which way it
faces. Areas are the raw cross-product magnitudes, i.e. twice the geometric
triangle area, matching what the clustering heuristics accumulate.
"""

import torch
from tensordict import tensorclass

from meshlets.utilities._inputs import as_index_tensor, as_position_tensor


@tensorclass
class Cones:
    """Centroid, unit normal and area for a batch of triangles or meshlets.

    Attributes
    ----------
    centroids : torch.Tensor
        Shape ``(n, 3)``.
    normals : torch.Tensor
        Unit normals, shape ``(n, 3)``. All-zero for degenerate entries.
    areas : torch.Tensor
        Raw (unnormalized) cross-product magnitudes, shape ``(n,)``.
    """

    centroids: torch.Tensor  # (n, 3)
    normals: torch.Tensor  # (n, 3)
    areas: torch.Tensor  # (n,)

    def __post_init__(self):
        if not torch.compiler.is_compiling():
            n = len(self.centroids)
            if self.centroids.ndim != 2 or self.centroids.shape[1] != 3:
                raise ValueError(
                    f"centroids must have shape (n, 3), got {tuple(self.centroids.shape)}"
                )
            if self.normals.shape != self.centroids.shape or self.areas.shape != (n,):
                raise ValueError(
                    f"Cone fields disagree in shape: centroids={tuple(self.centroids.shape)}, "
                    f"normals={tuple(self.normals.shape)}, areas={tuple(self.areas.shape)}"
                )

    @property
    def n_cones(self) -> int:
        """Number of cones in the batch."""
        return len(self.areas)

    @property
    def is_degenerate(self) -> torch.Tensor:
        """Boolean mask of entries with zero area."""
        return self.areas == 0

    @classmethod
    def empty_batch(cls, dtype: torch.dtype = torch.float32) -> "Cones":
        """Zero-length cone batch."""
        return cls(
            centroids=torch.empty((0, 3), dtype=dtype),
            normals=torch.empty((0, 3), dtype=dtype),
            areas=torch.empty(0, dtype=dtype),
            batch_size=torch.Size([]),
        )


def compute_triangle_cones(indices, positions) -> tuple[Cones, float]:
    """Compute the cone of every triangle and the total raw mesh area.

    Parameters
    ----------
    indices : array-like
        Triangle index buffer, flat or ``(n_triangles, 3)``.
    positions : array-like
        Vertex positions, flat xyz or ``(n_vertices, 3)``.

    Returns
    -------
    tuple[Cones, float]
        ``(cones, mesh_area)``. ``mesh_area`` sums the raw areas of all
        triangles.

    Notes
    -----
    Degenerate triangles (collinear or coincident vertices) get an all-zero
    normal and zero area instead of raising; they take part in clustering
    as zero-information geometry.

    Examples
    --------
    >>> cones, area = compute_triangle_cones(
    ...     [0, 1, 2], [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
    ... )
    >>> cones.normals.tolist(), area
    ([[0.0, 0.0, 1.0]], 1.0)
    """
    indices = as_index_tensor(indices)
    positions = as_position_tensor(positions)

    if len(indices) == 0:
        return Cones.empty_batch(dtype=positions.dtype), 0.0

    tri_points = positions[indices.reshape(-1, 3)]  # (n_triangles, 3, 3)
    centroids = tri_points.sum(dim=1) / 3

    ### Normal from the cross product of the two edges leaving vertex 0
    edge_10 = tri_points[:, 1] - tri_points[:, 0]
    edge_20 = tri_points[:, 2] - tri_points[:, 0]
    normals = torch.linalg.cross(edge_10, edge_20)
    areas = torch.linalg.vector_norm(normals, dim=-1)

    inv_areas = torch.zeros_like(areas)
    nonzero = areas > 0
    inv_areas[nonzero] = 1.0 / areas[nonzero]
    normals = normals * inv_areas.unsqueeze(-1)

    return (
        Cones(
            centroids=centroids,
            normals=normals,
            areas=areas,
            batch_size=torch.Size([]),
        ),
        float(areas.sum()),
    )
