from repairdesk.constants.permissions import ROLE_TECHNICIAN, ROLE_ADMIN
from tests.test_lifecycle_helpers import role_headers


def test_state_round_trip_per_user(app_instance, client):
    mine = role_headers(app_instance, 'state-a@example.com', ROLE_TECHNICIAN)
    theirs = role_headers(app_instance, 'state-b@example.com', ROLE_ADMIN)

    r = client.put('/state/jobFilters', json={'value': {'status': 'diagnosis', 'priority': 'all'}}, headers=mine)
    assert r.status_code == 200
    assert client.get('/state/jobFilters', headers=mine).get_json() == {
        'key': 'jobFilters', 'value': {'status': 'diagnosis', 'priority': 'all'}}
    assert client.get('/state', headers=mine).get_json() == {'keys': ['jobFilters']}

    # another account has its own namespace
    assert client.get('/state/jobFilters', headers=theirs).get_json()['value'] is None
    assert client.get('/state', headers=theirs).get_json()['keys'] == []

    client.put('/state/jobFilters', json={'value': 'all'}, headers=mine)
    assert client.get('/state/jobFilters', headers=mine).get_json()['value'] == 'all'

    r = client.delete('/state/jobFilters', headers=mine)
    assert r.get_json() == {'key': 'jobFilters', 'status': 'deleted'}
    assert client.get('/state/jobFilters', headers=mine).get_json()['value'] is None


def test_state_validation(app_instance, client):
    h = role_headers(app_instance, 'state-a@example.com', ROLE_TECHNICIAN)
    assert client.put('/state/theme', json={'nope': 1}, headers=h).status_code == 400
    assert client.put('/state/theme', data='not json', headers=h).status_code == 400
    assert client.get('/state/' + 'k' * 129, headers=h).status_code == 400
    assert client.get('/state').status_code == 401
