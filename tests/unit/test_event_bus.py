import pytest
from stackup.MANAGERS.event_bus import EventBus, LifecycleEvent


@pytest.mark.asyncio
async def test_publish_in_subscription_order():
    bus = EventBus()
    calls = []

    async def second(value):
        calls.append(('second', value))

    bus.subscribe('start', lambda value: calls.append(('first', value)))
    bus.subscribe(LifecycleEvent.START, second)
    await bus.publish(LifecycleEvent.START, 1)
    assert calls == [('first', 1), ('second', 1)]


@pytest.mark.asyncio
async def test_unsubscribe():
    bus = EventBus()
    calls = []
    callback = lambda: calls.append('stop')
    bus.subscribe('stop', callback)
    bus.subscribe('stop', callback)
    assert len(bus.subscribers('stop')) == 1

    bus.unsubscribe('stop', callback)
    bus.unsubscribe('stop', callback)
    await bus.publish('stop')
    assert calls == []


@pytest.mark.asyncio
async def test_publish_without_subscribers():
    await EventBus().publish('init')


@pytest.mark.asyncio
async def test_subscriber_error_propagates():
    bus = EventBus()

    def boom():
        raise ValueError("boom")

    bus.subscribe('init', boom)
    with pytest.raises(ValueError):
        await bus.publish('init')
