"""Shared fixtures for CareScheduler tests."""

from collections.abc import Iterator
from datetime import timedelta
from typing import Any
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.carescheduler import const
from custom_components.carescheduler.utils import dt_utils

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture(autouse=True)
def utc_facility_timezone() -> Iterator[None]:
    """Run every test with a UTC facility timezone unless a test overrides it."""
    dt_utils.set_default_timezone(ZoneInfo("UTC"))
    yield
    dt_utils.set_default_timezone(ZoneInfo("UTC"))


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a CareScheduler config entry with default options."""
    return MockConfigEntry(
        domain=const.DOMAIN,
        title=const.DEFAULT_NAME,
        data={},
        options={
            const.CONF_SWEEP_INTERVAL: const.DEFAULT_SWEEP_INTERVAL,
            const.CONF_DEFAULT_CAPACITY_MINUTES: 480,
            const.CONF_DUE_WINDOW_MINUTES: const.DEFAULT_DUE_WINDOW_MINUTES,
            const.CONF_NOTIFY_SERVICE: "",
        },
        entry_id="test-entry-123",
    )


@pytest.fixture
async def setup_integration(
    hass: HomeAssistant, mock_config_entry: MockConfigEntry
) -> MockConfigEntry:
    """Set up CareScheduler with an empty store."""
    mock_config_entry.add_to_hass(hass)
    assert await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()
    return mock_config_entry


# ============================================================================
# Mock hass / coordinator for manager tests
# ============================================================================


@pytest.fixture
def mock_hass() -> MagicMock:
    """Create mock Home Assistant instance."""
    hass = MagicMock()

    def handle_create_task(coro):
        """Close scheduled coroutines to avoid 'never awaited' warnings."""
        coro.close()
        return MagicMock()

    hass.async_create_task = MagicMock(side_effect=handle_create_task)
    return hass


@pytest.fixture
def mock_coordinator() -> MagicMock:
    """Create a mock coordinator backed by real bucket dicts."""
    coordinator = MagicMock()
    coordinator.config_entry.entry_id = "test-entry-123"

    data: dict[str, Any] = {
        const.DATA_META: {const.DATA_META_SCHEMA_VERSION: const.SCHEMA_VERSION},
        const.DATA_SCHEDULE_DAYS: {},
        const.DATA_CARE_TASKS: {},
        const.DATA_OBSERVATIONS: {},
    }
    coordinator._data = data
    coordinator.schedule_days_data = data[const.DATA_SCHEDULE_DAYS]
    coordinator.care_tasks_data = data[const.DATA_CARE_TASKS]
    coordinator.observations_data = data[const.DATA_OBSERVATIONS]
    coordinator.meta_data = data[const.DATA_META]

    def bucket_for_kind(kind: str) -> dict[str, Any]:
        if kind == const.INSTANCE_KIND_OBSERVATION:
            return data[const.DATA_OBSERVATIONS]
        return data[const.DATA_CARE_TASKS]

    def iter_instances() -> Iterator[dict[str, Any]]:
        yield from data[const.DATA_CARE_TASKS].values()
        yield from data[const.DATA_OBSERVATIONS].values()

    def get_instance(instance_id: str) -> dict[str, Any] | None:
        return data[const.DATA_CARE_TASKS].get(instance_id) or data[
            const.DATA_OBSERVATIONS
        ].get(instance_id)

    coordinator.bucket_for_kind = MagicMock(side_effect=bucket_for_kind)
    coordinator.iter_instances = MagicMock(side_effect=iter_instances)
    coordinator.get_instance = MagicMock(side_effect=get_instance)
    coordinator.default_capacity_minutes = 480
    coordinator.due_window = timedelta(minutes=15)
    coordinator.notify_service = ""
    coordinator._persist = MagicMock()
    return coordinator
