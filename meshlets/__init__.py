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

"""Meshlet clustering for triangle meshes.

Partitions a triangle mesh into small clusters ("meshlets") of bounded vertex
and triangle count, suitable for mesh-shader style rendering and culling.
"""

from meshlets.clustering import ClusterBuilder, Meshlets, build_meshlets, meshlet_bound
from meshlets.config import ClusterConfig
from meshlets.mesh import TriangleMesh
from meshlets.utilities import generate_vertex_remap

__version__ = "0.1.0a0"
