from repairdesk.constants.permissions import ROLE_ADMIN
from tests.test_lifecycle_helpers import role_headers, create_resource_and_assert


def _seed(client, h, n=3):
    for i in range(n):
        create_resource_and_assert(client, '/customers', {'name': f'Paginated Pell {i}'}, h)


def test_pagination_meta(app_instance, client):
    h = role_headers(app_instance, 'etag-admin@example.com', ROLE_ADMIN)
    _seed(client, h)
    body = client.get('/customers?q=paginated%20pell&limit=2&offset=0&sort=name', headers=h).get_json()
    assert body['pagination'] == {'total': 3, 'limit': 2, 'offset': 0, 'returned': 2}
    assert [c['name'] for c in body['data']] == ['Paginated Pell 0', 'Paginated Pell 1']
    tail = client.get('/customers?q=paginated%20pell&limit=2&offset=2&sort=name', headers=h).get_json()
    assert tail['pagination']['returned'] == 1
    clamped = client.get('/customers?limit=5000', headers=h).get_json()
    assert clamped['pagination']['limit'] == 200
    assert client.get('/customers?limit=lots', headers=h).status_code == 400
    assert client.get('/customers?sort=shoe_size', headers=h).status_code == 400


def test_etag_and_conditional_requests(app_instance, client):
    h = role_headers(app_instance, 'etag-admin@example.com', ROLE_ADMIN)
    create_resource_and_assert(client, '/customers', {'name': 'Etag Esme'}, h)
    first = client.get('/customers?q=etag%20esme', headers=h)
    etag = first.headers['ETag']
    assert etag
    assert first.headers.get('X-Last-Modified-ISO', '').endswith('Z')

    again = client.get('/customers?q=etag%20esme', headers={**h, 'If-None-Match': etag})
    assert again.status_code == 304
    assert again.data == b''

    ims = client.get('/customers?q=etag%20esme', headers={**h, 'If-Modified-Since': first.headers['Last-Modified']})
    assert ims.status_code == 304

    stale = client.get('/customers?q=etag%20esme', headers={**h, 'If-None-Match': 'something-else'})
    assert stale.status_code == 200

    create_resource_and_assert(client, '/customers', {'name': 'Etag Esme Two'}, h)
    changed = client.get('/customers?q=etag%20esme', headers=h)
    assert changed.headers['ETag'] != etag


def test_head_and_single_item_validators(app_instance, client):
    h = role_headers(app_instance, 'etag-admin@example.com', ROLE_ADMIN)
    cust = create_resource_and_assert(client, '/customers', {'name': 'Head Hana'}, h)
    head = client.head('/customers?q=head%20hana', headers=h)
    assert head.status_code == 200 and head.data == b'' and head.headers['ETag']
    one = client.get(f"/customers/{cust['id']}", headers=h)
    assert one.status_code == 200
    cached = client.get(f"/customers/{cust['id']}", headers={**h, 'If-None-Match': one.headers['ETag']})
    assert cached.status_code == 304
