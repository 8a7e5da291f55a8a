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
Dependency resolution for services to determine startup and shutdown order.
"""
import heapq
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set

from ..exceptions import CyclicDependencyError, UnknownNodeError, UnknownServiceError
from ..MODELS.stack_config import StackConfig

logger = logging.getLogger(__name__)


class DependencyGraph:
    """
    Directed graph of services, where an edge ``a -> b`` means "a depends on b".

    Nodes keep the order in which they were added; that order breaks ties
    when several nodes are ready at the same time.
    """
    def __init__(self, dependencies: Optional[Mapping[str, Iterable[str]]] = None):
        """
        :param dependencies: Optional mapping of node to its prerequisites, in registration order.
        """
        self._index: Dict[str, int] = {}
        self._requires: Dict[str, Set[str]] = {}
        if dependencies:
            for node in dependencies:
                self.add_node(node)
            for node, prerequisites in dependencies.items():
                for prerequisite in prerequisites:
                    self.add_dependency(node, prerequisite)

    def add_node(self, node: str):
        """
        Adds a node. Adding an existing node is a no-op and keeps its position.
        """
        if node not in self._index:
            self._index[node] = len(self._index)
            self._requires[node] = set()

    def add_dependency(self, node: str, prerequisite: str):
        """
        Declares that ``node`` must come after ``prerequisite``.

        The prerequisite does not have to exist yet; it is checked when ordering.
        """
        self.add_node(node)
        self._requires[node].add(prerequisite)

    @property
    def nodes(self) -> List[str]:
        return list(self._index)

    def dependencies_of(self, node: str) -> Set[str]:
        return set(self._requires[node])

    def dependents_of(self, node: str) -> Set[str]:
        return {name for name, reqs in self._requires.items() if node in reqs}

    def topological_order(self) -> List[str]:
        """
        Orders the nodes so that each one comes after everything it depends on.

        Kahn's algorithm; among nodes that are ready at the same time the one
        added first wins, so the result is reproducible.

        :return: Node names in dependency order.
        :raises UnknownNodeError: If a node depends on a node that is not in the graph.
        :raises CyclicDependencyError: If the dependencies contain a cycle.
        """
        dependents: Dict[str, List[str]] = {node: [] for node in self._index}
        indegree: Dict[str, int] = {}
        for node, prerequisites in self._requires.items():
            # Sorted for a stable error when several prerequisites are missing
            for prerequisite in sorted(prerequisites, key=self._sort_key):
                if prerequisite not in self._index:
                    raise UnknownNodeError(node, prerequisite)
                dependents[prerequisite].append(node)
            indegree[node] = len(prerequisites)

        ready = [(self._index[node], node) for node, count in indegree.items() if count == 0]
        heapq.heapify(ready)

        ordered = []
        while ready:
            _, node = heapq.heappop(ready)
            ordered.append(node)
            for dependent in dependents[node]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heapq.heappush(ready, (self._index[dependent], dependent))

        if len(ordered) < len(self._index):
            blocked = [node for node in self._index if indegree[node] > 0]
            raise CyclicDependencyError(self._find_cycle(blocked, indegree), blocked)

        return ordered

    def _find_cycle(self, blocked: List[str], indegree: Dict[str, int]) -> List[str]:
        """
        Walks un-ordered prerequisites from the first blocked node until a node repeats.

        Every blocked node still waits on at least one blocked prerequisite, so the
        walk always closes a cycle.
        """
        path: List[str] = []
        seen: Dict[str, int] = {}
        node = blocked[0]
        while node not in seen:
            seen[node] = len(path)
            path.append(node)
            node = min(
                (req for req in self._requires[node] if indegree[req] > 0),
                key=self._sort_key,
            )
        return path[seen[node]:] + [node]

    def _sort_key(self, node: str):
        return (self._index.get(node, len(self._index)), node)


def topological_order(nodes: Iterable[str], dependencies: Mapping[str, Iterable[str]]) -> List[str]:
    """
    Orders ``nodes`` so that each one follows its prerequisites.

    :param nodes: Node names in registration order.
    :param dependencies: Prerequisites per node; nodes without an entry have none.
    :return: Node names in dependency order.
    :raises UnknownServiceError: If ``dependencies`` has a key missing from ``nodes``.
    """
    graph = DependencyGraph()
    for node in nodes:
        graph.add_node(node)
    known = set(graph.nodes)
    for node, prerequisites in dependencies.items():
        if node not in known:
            raise UnknownServiceError(node, f"Dependencies declared for undefined service '{node}'")
        for prerequisite in prerequisites:
            graph.add_dependency(node, prerequisite)
    return graph.topological_order()


class DependencyResolver:
    """
    Resolves the startup and shutdown order of the services declared in a stack file.
    """
    def resolve_order(self, config: StackConfig) -> List[str]:
        """
        Determines the order to start services in, without constructing them.

        :param config: The stack configuration.
        :return: Service names in the order they should be started.
        :raises CyclicDependencyError: If a circular dependency is detected.
        :raises UnknownNodeError: If a service depends on an undeclared service.
        """
        order = topological_order(
            config.services.keys(),
            {name: svc.depends_on for name, svc in config.services.items()},
        )
        logger.debug("Resolved start order: %s", ", ".join(order))
        return order
