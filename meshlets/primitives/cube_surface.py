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

"""Closed cube surface with shared corner vertices.

8 vertices and 12 triangles, two per face, all wound outward.
"""

import torch

from meshlets.mesh import TriangleMesh

# Corner i sits at ((i >> 0) & 1, (i >> 1) & 1, (i >> 2) & 1) scaled to the cube.
_FACES = [
    [0, 2, 1],  # z = -size/2
    [1, 2, 3],
    [4, 5, 6],  # z = +size/2
    [5, 7, 6],
    [0, 1, 4],  # y = -size/2
    [1, 5, 4],
    [2, 6, 3],  # y = +size/2
    [3, 6, 7],
    [0, 4, 2],  # x = -size/2
    [2, 4, 6],
    [1, 3, 5],  # x = +size/2
    [3, 7, 5],
]


def load(
    size: float = 1.0,
    center: tuple[float, float, float] = (0.0, 0.0, 0.0),
    device: torch.device | str = "cpu",
) -> TriangleMesh:
    """Create the surface of an axis-aligned cube.

    Parameters
    ----------
    size : float
        Edge length.
    center : tuple[float, float, float]
        Cube center.
    device : str
        Compute device ('cpu' or 'cuda').

    Returns
    -------
    TriangleMesh
        Mesh with 8 points and 12 triangles.
    """
    if size <= 0:
        raise ValueError(f"size must be positive, got {size=}")

    corner_ids = torch.arange(8, device=device)
    bits = torch.stack([(corner_ids >> axis) & 1 for axis in range(3)], dim=1)
    points = (bits.to(torch.float32) - 0.5) * size + torch.tensor(
        center, dtype=torch.float32, device=device
    )
    cells = torch.tensor(_FACES, dtype=torch.int64, device=device)

    return TriangleMesh(points=points, cells=cells, batch_size=torch.Size([]))
