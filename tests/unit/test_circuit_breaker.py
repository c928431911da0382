import pytest
from prometheus_client import REGISTRY

from leadflow.errors import CircuitOpenError
from leadflow.resilience import CircuitBreakerConfig, CircuitBreakerRegistry, CircuitState


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


async def _ok():
    return "ok"


async def _boom():
    raise RuntimeError("downstream unavailable")


def _registry(clock):
    config = CircuitBreakerConfig(
        failure_threshold=3, success_threshold=2, timeout_ms=1000, monitoring_period_ms=5000
    )
    return CircuitBreakerRegistry(config, clock=clock)


@pytest.mark.asyncio
async def test_circuit_opens_after_threshold_and_rejects_calls():
    clock = FakeClock()
    breakers = _registry(clock)

    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breakers.execute("whatsapp", _boom)

    assert breakers.get_state("whatsapp") is CircuitState.OPEN
    assert breakers.is_open("whatsapp")

    called = []

    async def tracked():
        called.append(True)
        return "ok"

    with pytest.raises(CircuitOpenError) as exc_info:
        await breakers.execute("whatsapp", tracked)
    assert exc_info.value.circuit_name == "whatsapp"
    assert not called


@pytest.mark.asyncio
async def test_half_open_recovers_after_successes():
    clock = FakeClock()
    breakers = _registry(clock)
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breakers.execute("crm", _boom)

    clock.advance(1001)
    assert not breakers.is_open("crm")
    assert await breakers.execute("crm", _ok) == "ok"
    assert breakers.get_state("crm") is CircuitState.HALF_OPEN

    await breakers.execute("crm", _ok)
    assert breakers.get_state("crm") is CircuitState.CLOSED
    assert breakers.statuses()["crm"]["failure_count"] == 0


@pytest.mark.asyncio
async def test_failure_in_half_open_reopens():
    clock = FakeClock()
    breakers = _registry(clock)
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breakers.execute("erp", _boom)

    clock.advance(1001)
    with pytest.raises(RuntimeError):
        await breakers.execute("erp", _boom)
    assert breakers.get_state("erp") is CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        await breakers.execute("erp", _ok)


@pytest.mark.asyncio
async def test_failures_outside_monitoring_window_do_not_accumulate():
    clock = FakeClock()
    breakers = _registry(clock)
    for _ in range(2):
        with pytest.raises(RuntimeError):
            await breakers.execute("slow", _boom)

    clock.advance(6000)
    with pytest.raises(RuntimeError):
        await breakers.execute("slow", _boom)
    assert breakers.get_state("slow") is CircuitState.CLOSED
    assert breakers.statuses()["slow"]["failure_count"] == 1


@pytest.mark.asyncio
async def test_circuits_are_independent_and_resettable():
    clock = FakeClock()
    breakers = _registry(clock)
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breakers.execute("a", _boom)

    assert breakers.get_state("b") is CircuitState.CLOSED
    assert await breakers.execute("b", _ok) == "ok"

    breakers.reset("a")
    assert breakers.get_state("a") is CircuitState.CLOSED
    assert await breakers.execute("a", _ok) == "ok"


@pytest.mark.asyncio
async def test_per_call_config_override_and_transition_metric():
    clock = FakeClock()
    breakers = _registry(clock)
    before = REGISTRY.get_sample_value(
        "leadflow_circuit_transitions_total", {"circuit": "fragile", "state": "OPEN"}
    ) or 0

    with pytest.raises(RuntimeError):
        await breakers.execute("fragile", _boom, {"failure_threshold": 1})

    assert breakers.get_state("fragile") is CircuitState.OPEN
    after = REGISTRY.get_sample_value(
        "leadflow_circuit_transitions_total", {"circuit": "fragile", "state": "OPEN"}
    )
    assert after == before + 1
