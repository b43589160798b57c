import math

import pytest
import requests

from household_budget.errors import StoreError
from household_budget.store import CellUpdate, SheetStoreClient, a1_notation, column_letter


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=''):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(payload={'headers': [], 'rows': []})
        self.error = error
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({'method': method, 'url': url, 'timeout': timeout, **kwargs})
        if self.error:
            raise self.error
        return self.response


def _client(session, app_key='secret'):
    return SheetStoreClient(base_url='http://store.test/', app_key=app_key, timeout=5, session=session)


def test_column_letters():
    assert column_letter(1) == 'A'
    assert column_letter(26) == 'Z'
    assert column_letter(27) == 'AA'
    assert column_letter(52) == 'AZ'
    assert column_letter(53) == 'BA'
    assert column_letter(703) == 'AAA'
    assert a1_notation('PLAN', 14, 3) == 'PLAN!C14'
    with pytest.raises(ValueError):
        column_letter(0)


def test_read_transactions_sends_app_key():
    payload = {'headers': ['Date', 'Amount'], 'rows': [['2024-01-01', '-5']]}
    session = FakeSession(FakeResponse(payload=payload))
    table = _client(session).read_transactions()
    assert table.headers == ['Date', 'Amount']
    assert table.rows == [['2024-01-01', '-5']]
    call = session.calls[0]
    assert call['method'] == 'GET'
    assert call['url'] == 'http://store.test/api/transactions'
    assert call['headers'] == {'x-app-key': 'secret'}
    assert 'cb' in call['params']
    assert call['timeout'] == 5


def test_app_key_is_optional():
    session = FakeSession()
    _client(session, app_key='').read_plan_table()
    assert session.calls[0]['headers'] == {}
    assert session.calls[0]['url'] == 'http://store.test/api/plan'


def test_non_2xx_is_surfaced_verbatim():
    session = FakeSession(FakeResponse(status_code=500, text='sheet exploded'))
    with pytest.raises(StoreError) as excinfo:
        _client(session).read_transactions()
    assert str(excinfo.value) == 'LEDGER HTTP 500 sheet exploded'
    assert excinfo.value.status_code == 500


def test_json_error_field_is_surfaced():
    session = FakeSession(FakeResponse(payload={'error': 'unauthorized'}))
    with pytest.raises(StoreError, match='^unauthorized$'):
        _client(session).read_plan_table()


def test_transport_failure_becomes_store_error():
    session = FakeSession(error=requests.ConnectionError('refused'))
    with pytest.raises(StoreError, match='refused'):
        _client(session).read_transactions()


def test_write_cells_posts_batch():
    session = FakeSession(FakeResponse(payload={'ok': True, 'count': 2}))
    result = _client(session).write_cells([CellUpdate(3, 4, 10.0), CellUpdate(4, 4, 'x')])
    assert result == {'ok': True, 'count': 2}
    call = session.calls[0]
    assert call['method'] == 'POST'
    assert call['url'] == 'http://store.test/api/forecastWrite'
    assert call['json'] == {'updates': [{'row': 3, 'col': 4, 'value': 10.0}, {'row': 4, 'col': 4, 'value': 'x'}]}
    assert call['headers']['Content-Type'] == 'application/json'


def test_write_cells_rejects_bad_addresses_before_sending():
    session = FakeSession()
    client = _client(session)
    with pytest.raises(StoreError, match='bad_update_shape'):
        client.write_cells([CellUpdate(3, 4, 1.0), CellUpdate(math.nan, 4, 1.0)])
    with pytest.raises(StoreError, match='bad_update_shape'):
        client.write_cells([CellUpdate(0, 4, 1.0)])
    with pytest.raises(StoreError, match='missing_updates'):
        client.write_cells([])
    assert session.calls == []


def test_write_plan_inputs_body():
    session = FakeSession(FakeResponse(payload={'ok': True}))
    _client(session).write_plan_inputs(add_income=100, weekly_earner_pay=1200)
    call = session.calls[0]
    assert call['url'] == 'http://store.test/api/planWrite'
    assert call['json'] == {'addInc': 100, 'addFix': '', 'austinPay': 1200, 'jennaPay': '', 'descrAdd': ''}


def test_published_csv_requires_url(monkeypatch):
    monkeypatch.setattr('household_budget.config.PLAN_CSV_URL', '')
    with pytest.raises(StoreError):
        _client(FakeSession()).read_published_csv()
    session = FakeSession(FakeResponse(text='a,b\n'))
    assert _client(session).read_published_csv('http://sheet.test/pub?output=csv') == 'a,b\n'
