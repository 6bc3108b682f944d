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

"""Minimal triangle mesh container tying the clustering pipeline together."""

import torch
from tensordict import tensorclass

from meshlets.clustering import ClusterBuilder, Meshlets
from meshlets.config import ClusterConfig
from meshlets.utilities import (
    generate_vertex_remap,
    remap_index_buffer,
    remap_vertex_buffer,
)


@tensorclass
class TriangleMesh:
    """A triangle mesh in 3D space.

    Attributes
    ----------
    points : torch.Tensor
        Vertex positions, shape ``(n_points, 3)``, floating point.
    cells : torch.Tensor
        Triangle vertex ids, shape ``(n_cells, 3)``, integer.

    Examples
    --------
    >>> from meshlets.primitives import cube_surface
    >>> mesh = cube_surface.load()
    >>> mesh.n_points, mesh.n_cells
    (8, 12)
    >>> mesh.build_meshlets().n_meshlets
    1
    """

    points: torch.Tensor  # (n_points, 3)
    cells: torch.Tensor  # (n_cells, 3)

    def __post_init__(self):
        if not torch.compiler.is_compiling():
            if self.points.ndim != 2 or self.points.shape[-1] != 3:
                raise ValueError(
                    f"`points` must have shape (n_points, 3), but got {self.points.shape=}."
                )
            if self.cells.ndim != 2 or self.cells.shape[-1] != 3:
                raise ValueError(
                    f"`cells` must have shape (n_cells, 3), but got {self.cells.shape=}."
                )
            if not torch.is_floating_point(self.points):
                raise TypeError(
                    f"`points` must have a floating-point dtype, but got {self.points.dtype=}."
                )
            if torch.is_floating_point(self.cells):
                raise TypeError(
                    f"`cells` must have an int-like dtype, but got {self.cells.dtype=}."
                )

    @property
    def n_points(self) -> int:
        return self.points.shape[0]

    @property
    def n_cells(self) -> int:
        return self.cells.shape[0]

    def build_meshlets(self, config: ClusterConfig | None = None) -> Meshlets:
        """Partition the triangles into meshlets; see :class:`ClusterBuilder`."""
        return ClusterBuilder(config).build(self.points, self.cells)

    def deduplicate(self, verify: bool = False) -> "TriangleMesh":
        """Merge bitwise-identical points and drop unreferenced ones.

        Parameters
        ----------
        verify : bool, optional
            Compare point bytes in addition to hashes before merging.

        Returns
        -------
        TriangleMesh
            A new mesh whose points are numbered in first-use order.
        """
        points = self.points.detach().cpu().contiguous()
        vertex_stride = points.element_size() * points.shape[-1]
        remap, unique_count = generate_vertex_remap(
            self.cells, points, vertex_stride, verify=verify
        )
        return TriangleMesh(
            points=remap_vertex_buffer(points, remap, unique_count),
            cells=remap_index_buffer(self.cells, remap).reshape(-1, 3),
            batch_size=torch.Size([]),
        )
