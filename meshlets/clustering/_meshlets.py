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

"""Result container of meshlet clustering."""

import torch
from tensordict import tensorclass

from meshlets.clustering._context import Cluster
from meshlets.geometry._cones import Cones
from meshlets.utilities._inputs import as_position_tensor


@tensorclass
class Meshlets:
    """Meshlets stored as windows into two shared tables.

    Meshlet ``i`` owns the vertex table entries
    ``vertices[vertex_offsets[i] : vertex_offsets[i] + vertex_counts[i]]``
    (global vertex ids, one per local slot) and the triangle table rows
    ``triangles[triangle_offsets[i] : triangle_offsets[i] + triangle_counts[i]]``
    (three local slot ids per row). Meshlets appear in finalization order.

    Attributes
    ----------
    vertex_offsets, triangle_offsets, vertex_counts, triangle_counts : torch.Tensor
        Shape ``(n_meshlets,)``, dtype int64.
    vertices : torch.Tensor
        Global vertex id per local slot, shape ``(n_slots,)``, dtype int64.
    triangles : torch.Tensor
        Local vertex slots, shape ``(n_rows, 3)``, dtype int64.
    source_triangles : torch.Tensor
        Input triangle id of every triangle row, shape ``(n_rows,)``.
    cone_centroids, cone_normals : torch.Tensor
        Meshlet cone centroid and unit normal, shape ``(n_meshlets, 3)``.
    cone_areas : torch.Tensor
        Summed raw triangle area per meshlet, shape ``(n_meshlets,)``.
    """

    vertex_offsets: torch.Tensor  # (n_meshlets,), int64
    triangle_offsets: torch.Tensor  # (n_meshlets,), int64
    vertex_counts: torch.Tensor  # (n_meshlets,), int64
    triangle_counts: torch.Tensor  # (n_meshlets,), int64
    vertices: torch.Tensor  # (n_slots,), int64
    triangles: torch.Tensor  # (n_rows, 3), int64
    source_triangles: torch.Tensor  # (n_rows,), int64
    cone_centroids: torch.Tensor  # (n_meshlets, 3)
    cone_normals: torch.Tensor  # (n_meshlets, 3)
    cone_areas: torch.Tensor  # (n_meshlets,)

    def __post_init__(self):
        if not torch.compiler.is_compiling():
            n = len(self.vertex_offsets)
            per_meshlet = {
                "triangle_offsets": len(self.triangle_offsets),
                "vertex_counts": len(self.vertex_counts),
                "triangle_counts": len(self.triangle_counts),
                "cone_centroids": len(self.cone_centroids),
                "cone_normals": len(self.cone_normals),
                "cone_areas": len(self.cone_areas),
            }
            mismatched = {k: v for k, v in per_meshlet.items() if v != n}
            if mismatched:
                raise ValueError(
                    f"Per-meshlet fields must all have length {n} "
                    f"(len(vertex_offsets)), got {mismatched}"
                )
            if self.triangles.ndim != 2 or self.triangles.shape[1] != 3:
                raise ValueError(
                    f"triangles must have shape (n_rows, 3), got {tuple(self.triangles.shape)}"
                )
            if len(self.source_triangles) != len(self.triangles):
                raise ValueError(
                    f"source_triangles must have one entry per triangle row, got "
                    f"{len(self.source_triangles)=} != {len(self.triangles)=}"
                )

    @property
    def n_meshlets(self) -> int:
        """Number of meshlets."""
        return len(self.vertex_offsets)

    @property
    def clusters(self) -> list[Cluster]:
        """Per-meshlet table windows as frozen :class:`Cluster` records."""
        return [
            Cluster(*window)
            for window in zip(
                self.vertex_offsets.tolist(),
                self.triangle_offsets.tolist(),
                self.vertex_counts.tolist(),
                self.triangle_counts.tolist(),
            )
        ]

    @property
    def cones(self) -> Cones:
        """Meshlet cones in meshlet order."""
        return Cones(
            centroids=self.cone_centroids,
            normals=self.cone_normals,
            areas=self.cone_areas,
            batch_size=torch.Size([]),
        )

    def meshlet_vertices(self, i: int) -> torch.Tensor:
        """Global vertex ids of meshlet ``i``, in local slot order."""
        start = int(self.vertex_offsets[i])
        return self.vertices[start : start + int(self.vertex_counts[i])]

    def meshlet_triangles(self, i: int) -> torch.Tensor:
        """Local triangle rows of meshlet ``i``, shape ``(triangle_count, 3)``."""
        start = int(self.triangle_offsets[i])
        return self.triangles[start : start + int(self.triangle_counts[i])]

    def meshlet_ids(self) -> torch.Tensor:
        """Owning meshlet of every triangle row, shape ``(n_rows,)``."""
        return torch.repeat_interleave(
            torch.arange(self.n_meshlets, device=self.triangles.device),
            self.triangle_counts,
        )

    def to_index_buffer(self) -> torch.Tensor:
        """Resolve local slots back to global vertex ids.

        Returns
        -------
        torch.Tensor
            Shape ``(n_rows, 3)``; row ``r`` is the input triangle
            ``source_triangles[r]`` with its original vertex order.
        """
        if len(self.triangles) == 0:
            return self.triangles.clone()
        base = self.vertex_offsets[self.meshlet_ids()]  # (n_rows,)
        return self.vertices[self.triangles + base.unsqueeze(1)]

    def extract_geometry(self, positions) -> list[tuple[torch.Tensor, torch.Tensor]]:
        """Materialize a standalone vertex and index buffer per meshlet.

        Parameters
        ----------
        positions : array-like
            Vertex positions of the clustered mesh, flat xyz or ``(n, 3)``.

        Returns
        -------
        list[tuple[torch.Tensor, torch.Tensor]]
            One ``(local_positions, local_triangles)`` pair per meshlet, of
            shapes ``(vertex_count, 3)`` and ``(triangle_count, 3)``.
        """
        positions = as_position_tensor(positions)
        return [
            (positions[self.meshlet_vertices(i)], self.meshlet_triangles(i))
            for i in range(self.n_meshlets)
        ]

    @classmethod
    def empty_mesh(cls, dtype: torch.dtype = torch.float32) -> "Meshlets":
        """Meshlets of a mesh without triangles."""
        empty_long = torch.empty(0, dtype=torch.long)
        return cls(
            vertex_offsets=empty_long,
            triangle_offsets=empty_long,
            vertex_counts=empty_long,
            triangle_counts=empty_long,
            vertices=empty_long,
            triangles=torch.empty((0, 3), dtype=torch.long),
            source_triangles=empty_long,
            cone_centroids=torch.empty((0, 3), dtype=dtype),
            cone_normals=torch.empty((0, 3), dtype=dtype),
            cone_areas=torch.empty(0, dtype=dtype),
            batch_size=torch.Size([]),
        )
