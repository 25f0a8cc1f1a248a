import pytest

from petmind import CognitionSystem, ManualClock, create_config
from petmind.telemetry import TelemetryBus


@pytest.fixture
def clock():
    return ManualClock(start=1000.0)


@pytest.fixture
def bus(clock):
    return TelemetryBus(clock=clock)


@pytest.fixture
def config():
    return create_config(seed=7, persist=False, curiosity__spike_chance=0.0)


@pytest.fixture
def system(config, clock):
    return CognitionSystem(config, clock=clock)


@pytest.fixture
def persistent_config(tmp_path):
    return create_config(
        seed=7,
        data_dir=str(tmp_path / "memories"),
        background_writes=False,
        curiosity__spike_chance=0.0,
    )
