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

"""Configuration for meshlet clustering."""

from collections.abc import Mapping
from dataclasses import asdict
from typing import Any

from pydantic import Field
from pydantic.dataclasses import dataclass


@dataclass(config={"extra": "forbid"})
class ClusterConfig:
    """Clustering configuration.

    Invalid values raise ``pydantic.ValidationError`` (a ``ValueError``) at
    construction time.
    """

    max_vertices: int = Field(default=64, ge=3)  # distinct vertices per meshlet
    max_triangles: int = Field(default=124, ge=1)  # triangles per meshlet
    cone_weight: float = Field(
        default=0.0, ge=0.0, le=1.0
    )  # 0 = spatial locality only, 1 = normal alignment only
    leaf_size: int = Field(default=8, ge=1)  # triangles per KD-tree leaf

    @classmethod
    def from_dict(cls, values: Mapping[str, Any] | None) -> "ClusterConfig":
        """Build a config from a mapping such as a parsed JSON or YAML section."""
        if values is None:
            return cls()
        return cls(**dict(values))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
