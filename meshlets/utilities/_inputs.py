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

"""Coercion and validation of user-supplied index and position buffers.

Callers may pass torch tensors, numpy arrays or nested Python sequences.
Everything downstream works on a flat int64 index tensor and an
``(n_vertices, 3)`` floating-point position tensor.
"""

import numpy as np
import torch


def as_index_tensor(indices) -> torch.Tensor:
    """Convert a triangle index buffer to a flat int64 tensor.

    Parameters
    ----------
    indices : array-like
        Flat ``(3 * n_triangles,)`` or ``(n_triangles, 3)`` vertex ids.

    Returns
    -------
    torch.Tensor
        Shape ``(3 * n_triangles,)``, dtype int64, on CPU.

    Raises
    ------
    TypeError
        If the buffer holds floating-point values.
    ValueError
        If the length is not a multiple of 3 or an id is negative.
    """
    if isinstance(indices, np.ndarray):
        if indices.size > 0 and np.issubdtype(indices.dtype, np.floating):
            raise TypeError(
                f"indices must be an integer array, got {indices.dtype=!r}"
            )
        indices = np.ascontiguousarray(indices, dtype=np.int64)
    tensor = torch.as_tensor(indices)
    # An empty Python list converts to a float tensor; accept it as no triangles.
    if tensor.numel() > 0 and (tensor.is_floating_point() or tensor.is_complex()):
        raise TypeError(f"indices must be an integer tensor, got {tensor.dtype=!r}")

    tensor = tensor.detach().reshape(-1).to(device="cpu", dtype=torch.int64)
    if len(tensor) % 3 != 0:
        raise ValueError(
            f"Index buffer length must be a multiple of 3, got {len(tensor)=}"
        )
    if len(tensor) > 0 and int(tensor.min()) < 0:
        raise ValueError(
            f"Index buffer contains negative vertex ids (min={int(tensor.min())})"
        )
    return tensor


def as_position_tensor(positions) -> torch.Tensor:
    """Convert a position buffer to an ``(n_vertices, 3)`` float tensor.

    Parameters
    ----------
    positions : array-like
        Flat ``(3 * n_vertices,)`` packed xyz values or ``(n_vertices, 3)``.

    Returns
    -------
    torch.Tensor
        Shape ``(n_vertices, 3)``, same floating dtype as the input, on CPU.

    Raises
    ------
    TypeError
        If the buffer is not floating-point.
    ValueError
        If the buffer cannot be viewed as xyz triples.
    """
    tensor = torch.as_tensor(positions)
    if not tensor.is_floating_point():
        raise TypeError(
            f"positions must be a floating-point tensor (got {tensor.dtype=!r}); "
            f"integer input would silently truncate cone computations"
        )
    tensor = tensor.detach().to(device="cpu")

    if tensor.ndim == 1:
        if len(tensor) % 3 != 0:
            raise ValueError(
                f"Flat position buffer length must be a multiple of 3, got {len(tensor)=}"
            )
        return tensor.reshape(-1, 3)
    if tensor.ndim != 2 or tensor.shape[1] != 3:
        raise ValueError(
            f"positions must have shape (n_vertices, 3), got {tuple(tensor.shape)}"
        )
    return tensor
