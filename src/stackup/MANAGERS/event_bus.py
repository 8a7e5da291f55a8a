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
Publish/subscribe for lifecycle notifications.
"""
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)


class LifecycleEvent(str, Enum):
    """
    Notifications published once a whole stack completes a lifecycle phase.
    """
    INIT = "init"
    START = "start"
    STOP = "stop"


class EventBus:
    """
    Delivers published events to the callbacks subscribed to them.

    Callbacks may be plain functions or coroutine functions; they run in
    subscription order and awaitable results are awaited before the next one.
    """
    def __init__(self):
        self._subscribers: Dict[str, List[Callable[..., Any]]] = {}

    def subscribe(self, event: Union[str, LifecycleEvent], callback: Callable[..., Any]):
        """
        Subscribes a callback to an event. Subscribing the same callback twice is a no-op.

        :param event: The event name.
        :param callback: Called with the published arguments.
        """
        callbacks = self._subscribers.setdefault(self._key(event), [])
        if callback not in callbacks:
            callbacks.append(callback)

    def unsubscribe(self, event: Union[str, LifecycleEvent], callback: Callable[..., Any]):
        """
        Removes a callback. Unknown callbacks are ignored.
        """
        callbacks = self._subscribers.get(self._key(event), [])
        if callback in callbacks:
            callbacks.remove(callback)

    def subscribers(self, event: Union[str, LifecycleEvent]) -> List[Callable[..., Any]]:
        return list(self._subscribers.get(self._key(event), []))

    async def publish(self, event: Union[str, LifecycleEvent], *args, **kwargs):
        """
        Publishes an event to every subscriber.

        A subscriber that raises stops delivery and the exception propagates to the publisher.
        """
        key = self._key(event)
        callbacks = self.subscribers(key)
        logger.debug("Publishing '%s' to %d subscriber(s)", key, len(callbacks))
        for callback in callbacks:
            result = callback(*args, **kwargs)
            if inspect.isawaitable(result):
                await result

    @staticmethod
    def _key(event: Union[str, LifecycleEvent]) -> str:
        return event.value if isinstance(event, LifecycleEvent) else event
