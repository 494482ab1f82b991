"""HttpHealthProbe のユニットテスト（respx モック）"""

import httpx
import respx

from rollout_guard import HttpHealthProbe, InMemoryHealthProbe

HEALTH_URL = "http://backend:8080/health"


@respx.mock
async def test_operational_is_healthy() -> None:
    respx.get(HEALTH_URL).mock(
        return_value=httpx.Response(200, json={"status": "operational"})
    )
    assert await HttpHealthProbe(HEALTH_URL).check_health() is True


@respx.mock
async def test_degraded_is_unhealthy() -> None:
    respx.get(HEALTH_URL).mock(
        return_value=httpx.Response(200, json={"status": "degraded"})
    )
    assert await HttpHealthProbe(HEALTH_URL).check_health() is False


@respx.mock
async def test_custom_healthy_statuses() -> None:
    respx.get(HEALTH_URL).mock(return_value=httpx.Response(200, json={"status": "ok"}))
    probe = HttpHealthProbe(HEALTH_URL, healthy_statuses=["ok", "operational"])
    assert await probe.check_health() is True


@respx.mock
async def test_non_200_is_unhealthy() -> None:
    respx.get(HEALTH_URL).mock(
        return_value=httpx.Response(503, json={"status": "operational"})
    )
    assert await HttpHealthProbe(HEALTH_URL).check_health() is False


@respx.mock
async def test_invalid_body_is_unhealthy() -> None:
    respx.get(HEALTH_URL).mock(return_value=httpx.Response(200, text="<html>ok</html>"))
    assert await HttpHealthProbe(HEALTH_URL).check_health() is False


@respx.mock
async def test_non_object_body_is_unhealthy() -> None:
    respx.get(HEALTH_URL).mock(return_value=httpx.Response(200, json=["operational"]))
    assert await HttpHealthProbe(HEALTH_URL).check_health() is False


@respx.mock
async def test_connection_error_is_unhealthy() -> None:
    respx.get(HEALTH_URL).mock(side_effect=httpx.ConnectError("refused"))
    assert await HttpHealthProbe(HEALTH_URL).check_health() is False


@respx.mock
async def test_timeout_is_unhealthy() -> None:
    respx.get(HEALTH_URL).mock(side_effect=httpx.ReadTimeout("slow"))
    assert await HttpHealthProbe(HEALTH_URL, timeout_seconds=0.1).check_health() is False


async def test_in_memory_probe() -> None:
    probe = InMemoryHealthProbe(healthy=False)
    assert await probe.check_health() is False
    probe.healthy = True
    assert await probe.check_health() is True
    assert probe.calls == 2
