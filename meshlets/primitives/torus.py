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

"""Closed torus around the z axis, swept from a circular tube profile."""

import torch

from meshlets.mesh import TriangleMesh


def load(
    major_radius: float = 1.0,
    minor_radius: float = 0.3,
    n_major: int = 48,
    n_minor: int = 24,
    center: tuple[float, float, float] = (0.0, 0.0, 0.0),
    device: torch.device | str = "cpu",
) -> TriangleMesh:
    """Create a torus by sweeping a tube cross-section around the z axis.

    Point ``i * n_minor + j`` lies on sweep step ``i`` and profile step ``j``.
    Every point is shared by six triangles, and triangles face outward.

    Parameters
    ----------
    major_radius : float
        Distance from the center to the tube center.
    minor_radius : float
        Radius of the tube; must be smaller than ``major_radius``.
    n_major, n_minor : int
        Steps around the sweep and around the tube cross-section.
    center : tuple of float
        Center of the torus.
    device : torch.device or str
        Device for the returned tensors.

    Returns
    -------
    TriangleMesh
        ``n_major * n_minor`` points and ``2 * n_major * n_minor`` triangles.
    """
    if min(n_major, n_minor) < 3:
        raise ValueError(
            f"Torus needs at least 3 steps per direction, got {n_major=}, {n_minor=}"
        )
    if not 0 < minor_radius < major_radius:
        raise ValueError(
            f"Expected 0 < minor_radius < major_radius, got {minor_radius=}, {major_radius=}"
        )

    ### Tube profile in the xz half-plane: (radial distance, height)
    phi = torch.arange(n_minor, device=device) * (2 * torch.pi / n_minor)
    radial = major_radius + minor_radius * torch.cos(phi)
    height = minor_radius * torch.sin(phi)

    ### Sweep the profile around z
    theta = torch.arange(n_major, device=device) * (2 * torch.pi / n_major)
    points = torch.stack(
        [
            torch.outer(torch.cos(theta), radial),
            torch.outer(torch.sin(theta), radial),
            height.expand(n_major, n_minor),
        ],
        dim=-1,
    ).reshape(-1, 3)
    points = points + torch.tensor(center, device=device)

    ### Two triangles per grid quad, wrapping in both directions
    grid = torch.arange(n_major * n_minor, device=device).reshape(n_major, n_minor)
    a = grid
    b = torch.roll(grid, shifts=-1, dims=1)
    c = torch.roll(grid, shifts=-1, dims=0)
    d = torch.roll(c, shifts=-1, dims=1)
    cells = torch.cat(
        [
            torch.stack([a, c, b], dim=-1).reshape(-1, 3),
            torch.stack([b, c, d], dim=-1).reshape(-1, 3),
        ]
    )

    return TriangleMesh(
        points=points.to(torch.float32), cells=cells, batch_size=torch.Size([])
    )
