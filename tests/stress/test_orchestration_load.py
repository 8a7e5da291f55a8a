import time

import pytest
from stackup.MANAGERS.service_orchestrator import ServiceOrchestrator
from stackup.PARSERS.stack_parser import StackParser
from stackup.RUNNERS.dependency_resolver import topological_order


class Counter:
    def __init__(self, log):
        self.log = log

    async def start(self):
        self.log.append(self)


@pytest.mark.asyncio
async def test_stress_orchestration():
    """
    Orchestrates 500 services where each one depends on up to three earlier ones.
    """
    log = []
    app = ServiceOrchestrator()
    for i in range(500):
        builder = app.add_service(f"service_{i}", Counter, log)
        builder.depends_on([f"service_{j}" for j in range(max(0, i - 3), i)])

    start_time = time.time()
    await app.start()
    end_time = time.time()

    print(f"Started 500 services in {end_time - start_time:.2f}s")
    assert app.is_running()
    assert log == [app.get(f"service_{i}") for i in range(500)]

    await app.stop()
    assert set(app.ps().values()) == {'stopped'}


def test_wide_graph_ordering():
    # One hub everybody depends on, registered last
    names = [f"leaf_{i}" for i in range(20000)] + ['hub']
    deps = {name: ['hub'] for name in names[:-1]}

    start_time = time.time()
    order = topological_order(names, deps)
    end_time = time.time()

    assert order[0] == 'hub'
    assert order[1:] == names[:-1]
    assert end_time - start_time < 2.0


def test_large_config_parsing():
    content = "services:\n"
    for i in range(1000):
        content += f"  service_{i}:\n"
        content += "    factory: types.SimpleNamespace\n"
        if i:
            content += f"    depends_on: [service_{i - 1}]\n"

    start_time = time.time()
    config = StackParser(context={}).parse_from_string(content)
    end_time = time.time()

    assert len(config.services) == 1000
    assert end_time - start_time < 5.0
