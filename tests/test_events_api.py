import pytest


EVENT_PAYLOAD = {
    'name': 'Data Science Day',
    'description': 'Talks on pandas and friends',
    'category': 'Technology',
    'start_date': '2030-03-10T09:00:00Z',
    'end_date': '2030-03-10T17:00:00Z',
    'location': 'Main Hall',
    'ticket_price': '49.99',
    'max_attendees': 100,
    'status': 'active',
}


def test_anonymous_listing_defaults_to_active(client, make_event):
    make_event(name='Open')
    make_event(name='Secret', status='draft')

    resp = client.get('/api/events')
    assert resp.status_code == 200
    assert [e['name'] for e in resp.get_json()] == ['Open']


def test_admin_listing_sees_every_status(admin_client, make_event):
    make_event(name='Open')
    make_event(name='Secret', status='draft')

    names = {e['name'] for e in admin_client.get('/api/events').get_json()}
    assert names == {'Open', 'Secret'}


def test_listing_filters_by_search_and_status(client, make_event):
    make_event(name='Jazz Brunch', category='Music', status='upcoming')
    make_event(name='Rust Workshop')

    resp = client.get('/api/events?status=upcoming&search=jazz')
    assert [e['name'] for e in resp.get_json()] == ['Jazz Brunch']


def test_get_event(client, make_event):
    event = make_event()
    resp = client.get(f"/api/events/{event['id']}")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['name'] == 'Python Meetup'
    assert body['start_date'] == '2030-05-01T18:00:00'
    assert body['bookings'] == []


def test_get_missing_event_returns_404(client):
    resp = client.get('/api/events/12345')
    assert resp.status_code == 404
    assert resp.get_json() == {'message': 'Event not found'}


def test_create_event_as_admin(admin_client):
    resp = admin_client.post('/api/events', json=EVENT_PAYLOAD)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['current_attendees'] == 0
    assert body['start_date'] == '2030-03-10T09:00:00'
    assert body['created_by'].startswith('user_')


def test_create_event_validates_payload(admin_client):
    resp = admin_client.post('/api/events', json={**EVENT_PAYLOAD, 'end_date': '2030-03-09T09:00:00Z'})
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Invalid request data'

    resp = admin_client.post('/api/events', json={'name': 'No details'})
    assert resp.status_code == 400
    fields = {e['field'] for e in resp.get_json()['errors']}
    assert {'category', 'start_date', 'location'} <= fields


def test_create_event_requires_admin(client, user_client):
    assert client.post('/api/events', json=EVENT_PAYLOAD).status_code == 401
    resp = user_client.post('/api/events', json=EVENT_PAYLOAD)
    assert resp.status_code == 403
    assert resp.get_json() == {'message': 'Admin access required'}


def test_update_event(admin_client, make_event):
    event = make_event()
    resp = admin_client.put(f"/api/events/{event['id']}", json={'status': 'completed', 'max_attendees': 20})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['status'] == 'completed'
    assert body['max_attendees'] == 20
    assert body['name'] == 'Python Meetup'


@pytest.mark.parametrize('field', ['name', 'start_date', 'ticket_price', 'max_attendees', 'status'])
def test_update_event_rejects_null_for_required_field(admin_client, make_event, field):
    event = make_event()
    resp = admin_client.put(f"/api/events/{event['id']}", json={field: None})
    assert resp.status_code == 400
    assert resp.get_json()['errors'][0]['field'] == field
    assert admin_client.get(f"/api/events/{event['id']}").get_json()[field] is not None


def test_update_event_allows_clearing_optional_field(admin_client, make_event):
    event = make_event()
    resp = admin_client.put(f"/api/events/{event['id']}", json={'description': None})
    assert resp.status_code == 200
    assert resp.get_json()['description'] is None


def test_update_end_date_alone_checked_against_stored_start(admin_client, make_event):
    event = make_event()
    resp = admin_client.put(f"/api/events/{event['id']}", json={'end_date': '2030-04-01T10:00:00'})
    assert resp.status_code == 400
    assert resp.get_json() == {'message': 'end_date must not be before start_date'}
    assert admin_client.get(f"/api/events/{event['id']}").get_json()['end_date'] == '2030-05-01T21:00:00'


def test_update_start_date_alone_checked_against_stored_end(admin_client, make_event):
    event = make_event()
    url = f"/api/events/{event['id']}"
    assert admin_client.put(url, json={'start_date': '2030-06-01T10:00:00'}).status_code == 400
    assert admin_client.put(url, json={'start_date': '2030-05-01T09:00:00'}).status_code == 200


def test_update_missing_event_returns_404(admin_client):
    assert admin_client.put('/api/events/999', json={'name': 'x'}).status_code == 404


def test_delete_event(admin_client, make_event):
    event = make_event()
    assert admin_client.delete(f"/api/events/{event['id']}").status_code == 204
    assert admin_client.get(f"/api/events/{event['id']}").status_code == 404
