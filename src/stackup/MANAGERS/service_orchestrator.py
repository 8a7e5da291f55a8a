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
Orchestration for multiple services, managing dependencies and lifecycle order.
"""
import asyncio
import inspect
import itertools
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..exceptions import LifecycleError, OrchestratorError, UnknownServiceError
from ..MODELS.service_entry import ServiceEntry, ServiceState
from ..MODELS.stack_config import StackConfig
from ..RUNNERS.dependency_resolver import DependencyGraph
from .event_bus import EventBus, LifecycleEvent

logger = logging.getLogger(__name__)

Names = Union[str, Iterable[str]]


def _flatten_names(names: Iterable[Names]) -> List[str]:
    """
    Flattens ``('a', ['b', 'c'])`` into ``['a', 'b', 'c']``.
    """
    flat = []
    for item in names:
        if isinstance(item, str):
            flat.append(item)
        else:
            flat.extend(item)
    return flat


class ServiceBuilder:
    """
    Returned by :meth:`ServiceOrchestrator.add_service` to configure the service just added.

    ``depends_on`` applies to this builder's own service, whatever was registered after it.
    """
    def __init__(self, orchestrator: "ServiceOrchestrator", entry: ServiceEntry):
        self.orchestrator = orchestrator
        self.entry = entry

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def service(self) -> Any:
        return self.entry.handle

    def depends_on(self, *names: Names) -> "ServiceBuilder":
        """
        Declares services that must complete each lifecycle phase before this one.

        :param names: Service names, or iterables of names.
        :return: This builder.
        """
        self.entry.add_dependencies(_flatten_names(names))
        return self

    def add_service(self, name: str, service: Any, *args, **kwargs) -> "ServiceBuilder":
        """
        Adds another service to the same orchestrator.
        """
        return self.orchestrator.add_service(name, service, *args, **kwargs)


class ServiceOrchestrator:
    """
    Orchestrates a collection of services based on their dependencies.

    Services may define ``init``, ``start`` and ``stop``; each is optional and may
    return an awaitable. Lifecycle calls run one service at a time, in dependency
    order for init and start and in reverse order for stop, and abort at the first
    failure without undoing the services already handled.

    The orchestrator has the same three coroutines, so it can itself be added as a
    service of another orchestrator.

    An orchestrator belongs to one event loop: its lifecycle lock binds to the loop
    that first waits on it, so do not drive the same instance from several loops.
    """
    def __init__(self,
                 configure: Optional[Callable[..., Any]] = None,
                 *args,
                 events: Optional[EventBus] = None,
                 **kwargs):
        """
        Initializes the orchestrator.

        :param configure: Optional callable invoked as ``configure(self, *args, **kwargs)``
                          to register the services of an application.
        :param events: Event bus receiving the ``init``, ``start`` and ``stop`` notifications.
        """
        self.events = events if events is not None else EventBus()
        self._services: Dict[str, ServiceEntry] = {}
        self._counter = itertools.count()
        # One top-level lifecycle call at a time; later callers wait their turn
        self._lock = asyncio.Lock()

        if configure is not None:
            configure(self, *args, **kwargs)

    @classmethod
    def from_config(cls, config: StackConfig, events: Optional[EventBus] = None) -> "ServiceOrchestrator":
        """
        Builds an orchestrator from a parsed stack file, constructing each service.

        :param config: The stack configuration.
        :param events: Optional event bus.
        :return: The configured orchestrator.
        """
        orchestrator = cls(events=events)
        for name, definition in config.services.items():
            factory = definition.factory
            handle = factory(*definition.args, **definition.kwargs) if callable(factory) else factory
            orchestrator.add_service(name, handle).depends_on(definition.depends_on)
        return orchestrator

    # Configuration

    def add_service(self, name: str, service: Any, *args, **kwargs) -> ServiceBuilder:
        """
        Registers a service, replacing any service of the same name.

        :param name: Unique service name.
        :param service: A service class, a factory (when arguments are given), or a service object.
        :param args: Constructor arguments.
        :param kwargs: Constructor keyword arguments.
        :return: A builder for declaring the service's dependencies.
        """
        if inspect.isclass(service) or ((args or kwargs) and callable(service)):
            handle = service(*args, **kwargs)
        else:
            handle = service

        if name in self._services:
            logger.debug("Replacing service '%s'", name)
            # Re-inserted so that registration order follows the latest registration
            del self._services[name]

        entry = ServiceEntry(name=name, handle=handle, index=next(self._counter))
        self._services[name] = entry
        return ServiceBuilder(self, entry)

    def depends_on(self, *names: Names) -> "ServiceOrchestrator":
        """
        Adds dependencies to the most recently added service.

        :param names: Service names, or iterables of names.
        :raises OrchestratorError: If no service was added yet.
        """
        if not self._services:
            raise OrchestratorError("depends_on() called before any service was added")
        last = next(reversed(self._services.values()))
        last.add_dependencies(_flatten_names(names))
        return self

    def add_dependency(self, name: str, *names: Names) -> "ServiceOrchestrator":
        """
        Adds dependencies to the named service.

        :param name: The dependent service.
        :param names: Services it depends on; they may be registered later.
        :raises UnknownServiceError: If ``name`` is not registered.
        """
        self.get_service_wrapper(name).add_dependencies(_flatten_names(names))
        return self

    def clear(self):
        """
        Forgets every registered service.
        """
        self._services.clear()

    # Structure

    def get_service_wrapper(self, name: str) -> ServiceEntry:
        """
        :raises UnknownServiceError: On unknown service.
        """
        try:
            return self._services[name]
        except KeyError:
            raise UnknownServiceError(name) from None

    def get(self, name: str) -> Any:
        """
        Gets a service object by name.

        :raises UnknownServiceError: On unknown service.
        """
        return self.get_service_wrapper(name).handle

    def get_service_names(self) -> List[str]:
        return list(self._services)

    def is_running(self) -> bool:
        """
        True when every service is running. An empty orchestrator counts as running.
        """
        return all(entry.running for entry in self._services.values())

    def ps(self) -> Dict[str, str]:
        """
        Returns the state of all services.

        :return: Service names and their states.
        """
        return {name: entry.state.value for name, entry in self._services.items()}

    def __contains__(self, name: str) -> bool:
        return name in self._services

    def __len__(self) -> int:
        return len(self._services)

    # Workflow

    def _services_sequence(self) -> List[ServiceEntry]:
        """
        Resolves dependencies over the current services and returns them in start order.
        """
        services = dict(self._services)
        graph = DependencyGraph({name: entry.dependencies for name, entry in services.items()})
        return [services[name] for name in graph.topological_order()]

    async def init(self):
        """
        Initializes all services in dependency order.

        :raises CyclicDependencyError: If the dependencies contain a cycle.
        :raises UnknownNodeError: If a dependency is not registered.
        :raises LifecycleError: If a service fails to initialize.
        """
        async with self._lock:
            await self._init()

    async def start(self):
        """
        Starts all services in dependency order.

        If any service has never been initialized, the whole stack is initialized first.
        """
        async with self._lock:
            if not all(entry.initialized for entry in self._services.values()):
                await self._init()
            sequence = self._services_sequence()
            logger.info("Starting services in order: %s", ", ".join(e.name for e in sequence))
            await self._run_sequence(LifecycleEvent.START, sequence, ServiceState.RUNNING)

    async def stop(self):
        """
        Stops all services in reverse dependency order.

        ``stop`` is called on every service, whatever its state.
        """
        async with self._lock:
            sequence = list(reversed(self._services_sequence()))
            logger.info("Stopping services in order: %s", ", ".join(e.name for e in sequence))
            await self._run_sequence(LifecycleEvent.STOP, sequence, ServiceState.STOPPED)

    async def _init(self):
        sequence = self._services_sequence()
        logger.info("Initializing services in order: %s", ", ".join(e.name for e in sequence))
        await self._run_sequence(LifecycleEvent.INIT, sequence, ServiceState.INITIALIZED)

    async def _run_sequence(self, phase: LifecycleEvent, sequence: List[ServiceEntry], state: ServiceState):
        """
        Runs one phase on each service in turn, then publishes the phase event.

        The first failure propagates immediately and nothing is published.
        """
        for entry in sequence:
            await self._invoke(entry, phase.value)
            # init never moves a running service back
            if phase is not LifecycleEvent.INIT or not entry.running:
                entry.state = state
        await self.events.publish(phase)

    async def _invoke(self, entry: ServiceEntry, phase: str):
        """
        Calls ``phase`` on a service and waits for its result.

        :raises LifecycleError: Wrapping whatever the service raised.
        """
        method = getattr(entry.handle, phase, None)
        if not callable(method):
            logger.debug("Service %s has no %s(), skipping", entry.name, phase)
            return

        logger.debug("%s: %s...", phase, entry.name)
        try:
            result = method()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("Service %s failed to %s: %s", entry.name, phase, e)
            raise LifecycleError(entry.name, phase, e) from e

    async def __aenter__(self) -> "ServiceOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()
