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

"""Planar zig-zag triangle strip.

Triangle ``i`` uses vertices ``i``, ``i + 1`` and ``i + 2``, so consecutive
triangles share an edge and the strip is a single path of triangles.
"""

import torch

from meshlets.mesh import TriangleMesh


def load(
    n_triangles: int = 16,
    width: float = 1.0,
    device: torch.device | str = "cpu",
) -> TriangleMesh:
    """Create a strip of ``n_triangles`` triangles along the x axis.

    Vertex ``k`` sits at ``(k // 2, (k % 2) * width, 0)``. Even triangles
    swap their first two vertices so that every triangle faces +z.

    Parameters
    ----------
    n_triangles : int
        Number of triangles.
    width : float
        Extent of the strip along y.
    device : str
        Compute device ('cpu' or 'cuda').

    Returns
    -------
    TriangleMesh
        Mesh with ``n_triangles + 2`` points.
    """
    if n_triangles < 1:
        raise ValueError(f"n_triangles must be at least 1, got {n_triangles=}")

    k = torch.arange(n_triangles + 2, device=device)
    points = torch.stack(
        [
            (k // 2).to(torch.float32),
            (k % 2).to(torch.float32) * width,
            torch.zeros(len(k), device=device),
        ],
        dim=1,
    )

    i = torch.arange(n_triangles, device=device)
    odd = (i % 2).bool()
    first = torch.where(odd, i, i + 1)
    second = torch.where(odd, i + 1, i)
    cells = torch.stack([first, second, i + 2], dim=1)

    return TriangleMesh(points=points, cells=cells, batch_size=torch.Size([]))
