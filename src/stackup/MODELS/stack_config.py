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
Models for declarative stack files.
"""
from typing import Any, Dict, List

from pydantic import BaseModel, Field, ImportString, field_validator


class ServiceDefinition(BaseModel):
    """
    A single service of a stack file: what to construct and what it depends on.
    """
    name: str
    # Dotted import path ("package.module.Class") or the object itself
    factory: ImportString
    args: List[Any] = []
    kwargs: Dict[str, Any] = {}
    depends_on: List[str] = []

    @field_validator('depends_on', mode='before')
    @classmethod
    def _split_depends_on(cls, value: Any) -> Any:
        """
        Accepts a single name, a list of names or a compose-style mapping.
        """
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, dict):
            return list(value.keys())
        return value


class StackConfig(BaseModel):
    """
    Complete configuration for a stack of services, in declaration order.
    """
    services: Dict[str, ServiceDefinition] = Field(default_factory=dict)
