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

"""Pytest configuration and shared fixtures for meshlets tests.

All fixtures defined here are automatically available to all test files
without explicit imports.
"""

import random

import numpy as np
import pytest
import torch

### Pytest Hooks ###


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow-running (for optional exclusion)"
    )


### Fixtures ###


@pytest.fixture(autouse=True, scope="function")
def seed_random_state():
    """Reset all random number generators to a fixed seed before each test.

    Tests that need a specific seed can still call torch.manual_seed() etc.
    explicitly, which will override this fixture's seeding.
    """
    SEED = 95051

    random.seed(SEED)
    np.random.seed(SEED)
    torch.manual_seed(SEED)

    yield


@pytest.fixture
def two_triangles():
    """Two triangles sharing the edge (1, 2), as (positions, indices)."""
    positions = torch.tensor(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]]
    )
    indices = torch.tensor([0, 1, 2, 2, 1, 3])
    return positions, indices


@pytest.fixture
def disjoint_triangles():
    """Two triangles with no shared vertex, far apart, as (positions, indices)."""
    positions = torch.tensor(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [10.0, 0.0, 0.0],
            [11.0, 0.0, 0.0],
            [10.0, 1.0, 0.0],
        ]
    )
    indices = torch.tensor([0, 1, 2, 3, 4, 5])
    return positions, indices


@pytest.fixture
def random_soup():
    """200 unconnected random triangles, as (positions, indices)."""
    n_triangles = 200
    positions = torch.rand(3 * n_triangles, 3)
    indices = torch.arange(3 * n_triangles)
    return positions, indices
