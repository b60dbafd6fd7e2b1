from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from gatedoctor.config.settings import DoctorSettings


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("gatedoctor")
    group.addoption(
        "--offline",
        action="store_true",
        dest="gatedoctor_offline",
        help="Run offline tests only (deselect tests marked 'online').",
    )
    group.addoption(
        "--online-only",
        action="store_true",
        dest="gatedoctor_online_only",
        help="Run only tests marked 'online' (deselect offline).",
    )


def _is_integration_path(s: str) -> bool:
    s = s.replace("\\", "/")
    return s.startswith("tests/integration/") or "/tests/integration/" in s


def _mark_by_path(items: list[pytest.Item]) -> None:
    for item in items:
        node_str = str(getattr(item, "fspath", item.nodeid))
        marker = (
            pytest.mark.online
            if _is_integration_path(node_str)
            else pytest.mark.offline
        )
        item.add_marker(marker)


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    _mark_by_path(items)

    offline_only = bool(config.getoption("gatedoctor_offline"))
    online_only = bool(config.getoption("gatedoctor_online_only"))

    if offline_only and online_only:
        raise pytest.UsageError("--offline and --online-only are mutually exclusive")

    deselect: list[pytest.Item] = []
    if online_only:
        deselect = [i for i in items if "online" not in i.keywords]
    elif offline_only:
        deselect = [i for i in items if "online" in i.keywords]

    if not deselect:
        return

    config.hook.pytest_deselected(items=deselect)
    items[:] = [i for i in items if i not in deselect]


@pytest.fixture
def make_settings() -> Callable[..., DoctorSettings]:
    def _make(**overrides) -> DoctorSettings:
        values = {
            "base_url": "https://gw.test/v1",
            "api_key": "sk-test-1234567890",
            "model": "m1",
        }
        values.update(overrides)
        return DoctorSettings(**values)

    return _make


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    def _build(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _build
