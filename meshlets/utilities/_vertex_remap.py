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

"""Deduplication of bitwise-identical vertices.

Vertices are treated as opaque byte records of ``vertex_stride`` bytes. Each
record is hashed as a sequence of little-endian 32-bit words with the
MurmurHash2 mixing step, and vertices are visited in index-buffer order: the
first vertex seen with a given hash gets the next canonical id and every later
vertex with that hash reuses it.

Algorithm
---------
1. View the vertex buffer as ``(n_vertices, vertex_stride // 4)`` words.
2. Hash every vertex at once (vectorized over vertices, looped over words).
3. Walk the index buffer, assigning dense canonical ids in first-seen order.

By default, equal hashes are taken to mean equal vertices. With
``verify=True`` candidates with equal hashes are additionally compared word by
word, so hash collisions cannot merge distinct vertices.
"""

import logging

import numpy as np
import torch

from meshlets.utilities._inputs import as_index_tensor

logger = logging.getLogger(__name__)

MURMUR_M = 0x5BD1E995
MURMUR_R = 24
_MASK32 = 0xFFFFFFFF


def vertex_words(vertex_buffer, vertex_stride: int) -> torch.Tensor:
    """View a packed vertex buffer as unsigned little-endian 32-bit words.

    Parameters
    ----------
    vertex_buffer : bytes, numpy.ndarray or torch.Tensor
        Packed vertex records. Arrays and tensors are read as their raw
        (native, i.e. little-endian) memory.
    vertex_stride : int
        Size of one vertex record in bytes.

    Returns
    -------
    torch.Tensor
        Shape ``(n_vertices, vertex_stride // 4)``, dtype int64, every value in
        ``[0, 2**32)``.

    Raises
    ------
    ValueError
        If ``vertex_stride`` is not a positive multiple of 4 or does not
        divide the buffer size.
    """
    if vertex_stride <= 0 or vertex_stride % 4 != 0:
        raise ValueError(
            f"vertex_stride must be a positive multiple of 4, got {vertex_stride=!r}"
        )

    if isinstance(vertex_buffer, torch.Tensor):
        vertex_buffer = vertex_buffer.detach().cpu().contiguous().numpy()
    if isinstance(vertex_buffer, np.ndarray):
        raw = np.ascontiguousarray(vertex_buffer).tobytes()
    else:
        raw = bytes(vertex_buffer)

    if len(raw) % vertex_stride != 0:
        raise ValueError(
            f"Vertex buffer size ({len(raw)} bytes) is not a multiple of "
            f"{vertex_stride=!r}"
        )

    words = np.frombuffer(raw, dtype="<u4").astype(np.int64)
    return torch.from_numpy(words).reshape(-1, vertex_stride // 4)


def hash_vertices(vertex_buffer, vertex_stride: int) -> torch.Tensor:
    """32-bit MurmurHash2-style hash of every vertex record.

    Starting from ``h = 0``, each word ``k`` is mixed as
    ``k *= m; k ^= k >> r; k *= m; h *= m; h ^= k`` modulo ``2**32`` with
    ``m = 0x5bd1e995`` and ``r = 24``.

    Parameters
    ----------
    vertex_buffer : bytes, numpy.ndarray or torch.Tensor
        Packed vertex records.
    vertex_stride : int
        Size of one vertex record in bytes.

    Returns
    -------
    torch.Tensor
        Shape ``(n_vertices,)``, dtype int64, values in ``[0, 2**32)``.

    Examples
    --------
    >>> hash_vertices(bytes(8), vertex_stride=4).tolist()
    [0, 0]
    """
    words = vertex_words(vertex_buffer, vertex_stride)
    hashes = torch.zeros(len(words), dtype=torch.int64)
    # Products stay below 2**63 because both factors are below 2**32 and 2**31.
    for j in range(words.shape[1]):
        k = (words[:, j] * MURMUR_M) & _MASK32
        k = k ^ (k >> MURMUR_R)
        k = (k * MURMUR_M) & _MASK32
        hashes = ((hashes * MURMUR_M) & _MASK32) ^ k
    return hashes


def generate_vertex_remap(
    indices,
    vertex_buffer,
    vertex_stride: int,
    *,
    verify: bool = False,
) -> tuple[torch.Tensor, int]:
    """Map every vertex to a dense canonical id shared by identical vertices.

    Parameters
    ----------
    indices : array-like of int or None
        Index buffer giving the visiting order. If None, every vertex is
        visited in storage order.
    vertex_buffer : bytes, numpy.ndarray or torch.Tensor
        Packed vertex records.
    vertex_stride : int
        Size of one vertex record in bytes; a positive multiple of 4.
    verify : bool, optional
        If True, vertices with equal hashes are merged only if their bytes
        are equal as well.

    Returns
    -------
    tuple[torch.Tensor, int]
        ``(remap, unique_count)``. ``remap`` has shape ``(n_vertices,)``;
        ``remap[v]`` is the canonical id of vertex ``v`` in
        ``[0, unique_count)``, or -1 if ``v`` is never referenced. Ids are
        assigned in first-seen order.

    Raises
    ------
    ValueError
        If the stride is invalid or ``indices`` references a vertex beyond
        the end of the buffer.
    """
    words = vertex_words(vertex_buffer, vertex_stride)
    n_vertices = len(words)

    if indices is None:
        order = range(n_vertices)
    else:
        index_tensor = as_index_tensor(indices)
        if len(index_tensor) > 0 and int(index_tensor.max()) >= n_vertices:
            raise ValueError(
                f"Index buffer references vertex {int(index_tensor.max())}, but "
                f"the vertex buffer only holds {n_vertices=} vertices"
            )
        order = index_tensor.tolist()

    hashes = hash_vertices(vertex_buffer, vertex_stride).tolist()
    records = words.tolist() if verify else None

    remap = [-1] * n_vertices
    first_seen: dict[int, int] = {}  # hash -> canonical id
    buckets: dict[int, list[tuple[int, int]]] = {}  # hash -> [(vertex, canonical id)]
    n_collisions = 0
    unique_count = 0

    for vertex in order:
        if remap[vertex] != -1:
            continue
        h = hashes[vertex]

        if not verify:
            canonical = first_seen.get(h)
            if canonical is None:
                canonical = unique_count
                first_seen[h] = canonical
                unique_count += 1
            remap[vertex] = canonical
            continue

        bucket = buckets.setdefault(h, [])
        for representative, canonical in bucket:
            if records[representative] == records[vertex]:
                remap[vertex] = canonical
                break
        else:
            if bucket:
                n_collisions += 1
            bucket.append((vertex, unique_count))
            remap[vertex] = unique_count
            unique_count += 1

    if n_collisions:
        logger.debug(
            f"Resolved {n_collisions} hash collisions among {n_vertices} vertices "
            f"by byte comparison"
        )

    return torch.tensor(remap, dtype=torch.long), unique_count


def remap_index_buffer(indices, remap: torch.Tensor) -> torch.Tensor:
    """Rewrite an index buffer to canonical vertex ids.

    Parameters
    ----------
    indices : array-like of int
        Index buffer, flat or ``(n_triangles, 3)``.
    remap : torch.Tensor
        Output of :func:`generate_vertex_remap`.

    Returns
    -------
    torch.Tensor
        Flat int64 index buffer of the same length.

    Raises
    ------
    ValueError
        If an index refers to a vertex the remap table leaves unreferenced.
    """
    index_tensor = as_index_tensor(indices)
    remapped = remap[index_tensor]
    if (remapped < 0).any():
        raise ValueError(
            "Index buffer references vertices that are unmapped in the remap "
            "table; generate the table from the same index buffer"
        )
    return remapped


def remap_vertex_buffer(
    vertices: torch.Tensor, remap: torch.Tensor, unique_count: int
) -> torch.Tensor:
    """Compact a per-vertex array to one row per canonical id.

    Each canonical id takes its row from the lowest-indexed vertex mapped to
    it; unreferenced vertices are dropped.

    Parameters
    ----------
    vertices : torch.Tensor
        Per-vertex data, shape ``(n_vertices, ...)``.
    remap : torch.Tensor
        Shape ``(n_vertices,)``, output of :func:`generate_vertex_remap`.
    unique_count : int
        Number of canonical ids.

    Returns
    -------
    torch.Tensor
        Shape ``(unique_count, ...)``.
    """
    vertices = torch.as_tensor(vertices)
    if len(remap) != len(vertices):
        raise ValueError(
            f"remap must have one entry per vertex, got {len(remap)=} != "
            f"{len(vertices)=}"
        )

    mapped = remap >= 0
    sources = torch.arange(len(vertices), device=remap.device)[mapped]
    representatives = torch.full(
        (unique_count,), len(vertices), dtype=torch.long, device=remap.device
    )
    representatives.scatter_reduce_(
        dim=0, index=remap[mapped], src=sources, reduce="amin"
    )
    return vertices[representatives]
