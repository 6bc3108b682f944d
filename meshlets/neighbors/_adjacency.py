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

"""Vertex-to-triangle adjacency stored in compressed sparse row layout.

Unlike a plain offsets/indices encoding, each vertex carries its own live
``count`` next to a fixed ``offset``, so triangles can be removed from a
vertex's list in place (swap with the last live entry, then shrink) while
the flat ``data`` buffer is never reallocated.
"""

import torch
from tensordict import tensorclass

from meshlets.utilities._inputs import as_index_tensor


def swap_remove(counts, offsets, data, vertex: int, triangle: int) -> bool:
    """Remove ``triangle`` from the live list of ``vertex`` in place.

    Works on any mutable integer sequences, host lists or tensors alike.
    The live list is ``data[offsets[vertex]:offsets[vertex] + counts[vertex]]``;
    the matching entry is overwritten by the last live entry and the count
    is decremented.

    Returns
    -------
    bool
        True if the triangle was found and removed.
    """
    start = int(offsets[vertex])
    last = start + int(counts[vertex]) - 1
    for i in range(start, last + 1):
        if int(data[i]) == triangle:
            data[i] = data[last]
            counts[vertex] -= 1
            return True
    return False


@tensorclass
class TriangleAdjacency:
    """Per-vertex lists of incident triangles.

    Attributes
    ----------
    counts : torch.Tensor
        Live incident triangle count per vertex, shape ``(n_vertices,)``,
        dtype int64. Decremented by :meth:`remove`.
    offsets : torch.Tensor
        Fixed start of each vertex's list in ``data``, shape
        ``(n_vertices,)``, dtype int64. Exclusive prefix sum of the initial
        counts.
    data : torch.Tensor
        Flattened triangle ids, shape ``(3 * n_triangles,)``, dtype int64.

    Examples
    --------
    >>> adj = build_triangle_adjacency(torch.tensor([0, 1, 2, 1, 3, 2]), 4)
    >>> adj.to_list()
    [[0], [0, 1], [0, 1], [1]]
    >>> adj.remove(1, 0)
    True
    >>> adj.to_list()
    [[0], [1], [0, 1], [1]]
    """

    counts: torch.Tensor  # (n_vertices,), int64
    offsets: torch.Tensor  # (n_vertices,), int64
    data: torch.Tensor  # (3 * n_triangles,), int64

    def __post_init__(self):
        if not torch.compiler.is_compiling():
            if len(self.counts) != len(self.offsets):
                raise ValueError(
                    f"counts and offsets must have one entry per vertex, got "
                    f"{len(self.counts)=} != {len(self.offsets)=}"
                )
            if len(self.data) % 3 != 0:
                raise ValueError(
                    f"data must hold three entries per triangle, got {len(self.data)=}"
                )

    @property
    def n_vertices(self) -> int:
        """Number of vertices covered by the adjacency."""
        return len(self.offsets)

    @property
    def n_triangles(self) -> int:
        """Number of triangles the adjacency was built from."""
        return len(self.data) // 3

    def neighbors(self, vertex: int) -> torch.Tensor:
        """Live triangle ids incident to ``vertex``."""
        start = int(self.offsets[vertex])
        return self.data[start : start + int(self.counts[vertex])]

    def to_list(self) -> list[list[int]]:
        """Convert the live lists to a ragged list-of-lists.

        Primarily for testing; the order within each list is the storage
        order, which changes as triangles are removed.
        """
        counts = self.counts.tolist()
        offsets = self.offsets.tolist()
        data = self.data.tolist()
        return [data[o : o + c] for o, c in zip(offsets, counts)]

    def remove(self, vertex: int, triangle: int) -> bool:
        """Remove ``triangle`` from the live list of ``vertex`` in place."""
        return swap_remove(self.counts, self.offsets, self.data, vertex, triangle)


def build_triangle_adjacency(indices, n_vertices: int) -> TriangleAdjacency:
    """Build the vertex-to-triangle CSR adjacency of a triangle index buffer.

    Algorithm:
        1. Count incidences per vertex.
        2. Exclusive prefix sum of the counts gives each vertex's offset.
        3. Scatter triangle ids into ``data`` in triangle order. A stable
           sort of the flat index buffer by vertex id produces exactly the
           order a per-vertex write cursor would.

    Parameters
    ----------
    indices : array-like
        Triangle index buffer, flat or ``(n_triangles, 3)``.
    n_vertices : int
        Number of vertices referenced by the buffer.

    Returns
    -------
    TriangleAdjacency
        Adjacency in which triangle ``t`` appears once in the list of each
        of its three vertex references.

    Raises
    ------
    ValueError
        If the incidences landing on ``0..n_vertices-1`` do not account for
        every index, which means the index buffer is malformed (for example
        it references vertices past ``n_vertices``).
    """
    if n_vertices < 0:
        raise ValueError(f"n_vertices must be non-negative, got {n_vertices=!r}")

    indices = as_index_tensor(indices)
    n_indices = len(indices)

    ### Count pass
    counts = torch.bincount(indices, minlength=n_vertices)[:n_vertices]
    total = int(counts.sum())
    if total != n_indices:
        raise ValueError(
            f"Malformed index buffer: per-vertex incidences sum to {total}, "
            f"expected {n_indices=} (vertex ids must be < {n_vertices=})"
        )

    ### Offset pass (exclusive prefix sum)
    offsets = torch.cumsum(counts, dim=0) - counts

    ### Scatter pass
    order = torch.argsort(indices, stable=True)
    data = order // 3

    return TriangleAdjacency(
        counts=counts, offsets=offsets, data=data, batch_size=torch.Size([])
    )
