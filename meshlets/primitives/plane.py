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

"""Flat, regularly triangulated square in 3D space (has boundary)."""

import torch

from meshlets.mesh import TriangleMesh


def load(
    size: float = 2.0,
    subdivisions: int = 10,
    normal: tuple[float, float, float] = (0.0, 0.0, 1.0),
    device: torch.device | str = "cpu",
) -> TriangleMesh:
    """Create a flat triangulated square centered at the origin.

    Parameters
    ----------
    size : float
        Length of each side.
    subdivisions : int
        Number of subdivisions per edge. Creates (subdivisions+1)^2 vertices
        and 2*subdivisions^2 triangles.
    normal : tuple[float, float, float]
        Normal vector of the plane (will be normalized).
    device : str
        Compute device ('cpu' or 'cuda').

    Returns
    -------
    TriangleMesh
    """
    if subdivisions < 1:
        raise ValueError(f"subdivisions must be at least 1, got {subdivisions=}")

    n = subdivisions + 1

    # Grid of points in the xy-plane
    coords = torch.linspace(-size / 2, size / 2, n, device=device)
    xx, yy = torch.meshgrid(coords, coords, indexing="ij")
    points = torch.stack(
        [xx.flatten(), yy.flatten(), torch.zeros_like(xx.flatten())], dim=1
    )

    ### Rotate +z onto the requested normal (Rodrigues' rotation formula)
    z_axis = torch.tensor([0.0, 0.0, 1.0], device=device)
    normal_t = torch.tensor(normal, dtype=torch.float32, device=device)
    normal_t = normal_t / torch.linalg.vector_norm(normal_t)

    axis = torch.linalg.cross(z_axis, normal_t)
    axis_norm = torch.linalg.vector_norm(axis)
    if axis_norm > 1e-6:
        axis = axis / axis_norm
        angle = torch.acos(torch.dot(z_axis, normal_t).clamp(-1.0, 1.0))
        K = torch.zeros((3, 3), device=device)
        K[0, 1], K[0, 2] = -axis[2], axis[1]
        K[1, 0], K[1, 2] = axis[2], -axis[0]
        K[2, 0], K[2, 1] = -axis[1], axis[0]
        R = torch.eye(3, device=device) + torch.sin(angle) * K + (1 - torch.cos(angle)) * (K @ K)
        points = points @ R.T
    elif torch.dot(z_axis, normal_t) < 0:
        # Antiparallel: flip about the x axis.
        points = points * torch.tensor([1.0, -1.0, -1.0], device=device)

    ### Two triangles per quad
    i_idx = torch.arange(subdivisions, device=device)
    ii, jj = torch.meshgrid(i_idx, i_idx, indexing="ij")
    idx = (ii * n + jj).flatten()
    tri1 = torch.stack([idx, idx + n, idx + 1], dim=1)
    tri2 = torch.stack([idx + 1, idx + n, idx + n + 1], dim=1)
    cells = torch.stack([tri1, tri2], dim=1).reshape(-1, 3)

    return TriangleMesh(points=points, cells=cells, batch_size=torch.Size([]))
