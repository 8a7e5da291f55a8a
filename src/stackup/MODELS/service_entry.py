# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
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

"""
Models for registered services and their lifecycle state.
"""
from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict


class ServiceState(str, Enum):
    """
    Lifecycle state of a registered service.
    """
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    RUNNING = "running"
    STOPPED = "stopped"


class ServiceEntry(BaseModel):
    """
    A registered service: its name, the service object, what it depends on and where it is in its lifecycle.

    Only the orchestrator changes ``state``.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    handle: Any = None
    index: int = 0
    # Kept as a list to preserve declaration order; duplicates are skipped on insert
    dependencies: List[str] = []
    state: ServiceState = ServiceState.UNINITIALIZED

    def add_dependencies(self, names: List[str]):
        """
        Adds dependency names, ignoring the ones already declared.

        :param names: Service names this one must follow.
        """
        for name in names:
            if name not in self.dependencies:
                self.dependencies.append(name)

    @property
    def initialized(self) -> bool:
        return self.state != ServiceState.UNINITIALIZED

    @property
    def running(self) -> bool:
        return self.state == ServiceState.RUNNING
