import json

from household_budget.forecast import ForecastState
from household_budget.state_storage import (
    FORECAST_STATE_KEY,
    ForecastStateStore,
    JsonFileStateBackend,
    MemoryStateBackend,
)


def test_missing_file_loads_defaults(tmp_path):
    store = ForecastStateStore(JsonFileStateBackend(tmp_path / 'state.json'))
    assert store.load() == ForecastState()


def test_round_trip_through_file(tmp_path):
    path = tmp_path / 'nested' / 'state.json'
    store = ForecastStateStore(JsonFileStateBackend(path))
    state = ForecastState()
    state.set_months_ahead(18)
    state.set_month_field('2024-05', 'hys_transfer', 300)
    store.save(state)

    on_disk = json.loads(path.read_text(encoding='utf-8'))
    assert on_disk[FORECAST_STATE_KEY]['version'] == ForecastState.VERSION
    assert store.load() == state


def test_corrupt_file_loads_defaults(tmp_path):
    path = tmp_path / 'state.json'
    path.write_text('{not json', encoding='utf-8')
    store = ForecastStateStore(JsonFileStateBackend(path))
    assert store.load() == ForecastState()


def test_other_keys_are_preserved(tmp_path):
    path = tmp_path / 'state.json'
    path.write_text(json.dumps({'unlocked': True}), encoding='utf-8')
    ForecastStateStore(JsonFileStateBackend(path)).save(ForecastState())
    assert json.loads(path.read_text(encoding='utf-8'))['unlocked'] is True


def test_memory_backend():
    backend = MemoryStateBackend()
    store = ForecastStateStore(backend)
    state = ForecastState(months_ahead=6)
    store.save(state)
    assert backend.data[FORECAST_STATE_KEY]['months_ahead'] == 6
    assert store.load().months_ahead == 6
