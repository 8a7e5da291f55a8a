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
Exceptions raised by the orchestrator, the dependency graph and the stack file loader.
"""
from typing import Iterable, List, Optional


class StackupError(Exception):
    """Base class for stackup errors."""


class OrchestratorError(StackupError):
    """Raised when the registration API is used incorrectly."""


class ConfigError(StackupError):
    """Raised when a stack file cannot be parsed or validated."""


class UnknownServiceError(StackupError, KeyError):
    """
    Raised when a service name is looked up or referenced but is not registered.
    """
    def __init__(self, name: str, message: Optional[str] = None):
        """
        :param name: The unknown service name.
        :param message: Optional custom error message.
        """
        self.name = name
        if message is None:
            message = f"Undefined service: {name}"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError quotes its argument
        return str(self.args[0])


class UnknownNodeError(UnknownServiceError):
    """
    Raised when a node of the dependency graph requires a node that does not exist.
    """
    def __init__(self, node: str, name: str):
        """
        :param node: The node declaring the dependency.
        :param name: The missing prerequisite.
        """
        self.node = node
        super().__init__(name, f"Service '{node}' depends on undefined service '{name}'")


class CyclicDependencyError(StackupError):
    """
    Raised when no ordering satisfies the declared dependencies.
    """
    def __init__(self, cycle: List[str], nodes: Iterable[str] = ()):
        """
        :param cycle: One cycle, first and last names equal (e.g. ['a', 'b', 'a']).
        :param nodes: Every node that could not be ordered.
        """
        self.cycle = list(cycle)
        self.nodes = sorted(nodes) if nodes else sorted(set(self.cycle))
        super().__init__(f"Circular dependency detected: {' -> '.join(self.cycle)}")


class LifecycleError(StackupError):
    """
    Raised when a service's init, start or stop fails.

    The failure is kept untouched in ``original`` and chained as ``__cause__``.
    """
    def __init__(self, service: str, phase: str, original: BaseException):
        self.service = service
        self.phase = phase
        self.original = original
        super().__init__(f"Service '{service}' failed to {phase}: {original!r}")
