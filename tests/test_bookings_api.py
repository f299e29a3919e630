from decimal import Decimal


def book(client, event_id, quantity=2, **extra):
    return client.post('/api/bookings', json={'event_id': event_id, 'quantity': quantity, **extra})


def test_create_booking_is_pending(app, user_client, make_event):
    event = make_event()
    resp = book(user_client, event['id'])
    assert resp.status_code == 201
    booking = resp.get_json()
    assert booking['status'] == 'pending'
    assert Decimal(booking['total_amount']) == Decimal('50.00')
    assert booking['attendee_email'] == 'alice@example.com'
    assert booking['attendee_name'] == 'Alice Smith'
    assert booking['booking_reference'].startswith('BK')

    event_now = user_client.get(f"/api/events/{event['id']}").get_json()
    assert event_now['current_attendees'] == 0

    notes = user_client.get('/api/notifications').get_json()
    assert notes[0]['title'] == 'Booking received'
    assert notes[0]['metadata']['booking_id'] == booking['id']


def test_booking_uses_explicit_attendee(user_client, make_event):
    event = make_event()
    resp = book(user_client, event['id'], attendee_name='Grandma', attendee_email='gran@example.com')
    assert resp.get_json()['attendee_name'] == 'Grandma'
    assert resp.get_json()['attendee_email'] == 'gran@example.com'


def test_booking_requires_login(client, make_event):
    event = make_event()
    assert book(client, event['id']).status_code == 401


def test_booking_unknown_event_returns_404(user_client):
    assert book(user_client, 999).status_code == 404


def test_booking_closed_event_rejected(user_client, make_event):
    event = make_event(status='draft')
    resp = book(user_client, event['id'])
    assert resp.status_code == 400
    assert resp.get_json() == {'message': 'Event is not open for booking'}


def test_booking_over_capacity_rejected(admin_client, user_client, make_event):
    event = make_event(max_attendees=3)
    first = book(user_client, event['id'], quantity=2).get_json()
    admin_client.post('/api/payment/confirm', json={'booking_id': first['id']})

    resp = book(user_client, event['id'], quantity=2)
    assert resp.status_code == 400
    assert resp.get_json() == {'message': 'Not enough tickets available'}
    assert book(user_client, event['id'], quantity=1).status_code == 201


def test_booking_quantity_validated(user_client, make_event):
    event = make_event()
    assert book(user_client, event['id'], quantity=0).status_code == 400


def test_admin_confirmation_counts_attendees(admin_client, user_client, make_event):
    event = make_event()
    booking = book(user_client, event['id'], quantity=3).get_json()

    resp = admin_client.post('/api/payment/confirm', json={'booking_id': booking['id']})
    assert resp.status_code == 200
    confirmed = resp.get_json()['booking']
    assert confirmed['status'] == 'confirmed'
    assert confirmed['stripe_payment_intent_id'].startswith('manual_')
    assert 'password_hash' not in confirmed['user']

    assert user_client.get(f"/api/events/{event['id']}").get_json()['current_attendees'] == 3


def test_cancel_confirmed_booking_releases_seats(admin_client, user_client, make_event):
    event = make_event()
    booking = book(user_client, event['id'], quantity=3).get_json()
    admin_client.post('/api/payment/confirm', json={'booking_id': booking['id']})

    resp = user_client.delete(f"/api/bookings/{booking['id']}")
    assert resp.status_code == 200
    assert user_client.get(f"/api/bookings/{booking['id']}").get_json()['status'] == 'cancelled'
    assert user_client.get(f"/api/events/{event['id']}").get_json()['current_attendees'] == 0


def test_cancelled_booking_cannot_be_confirmed(admin_client, user_client, make_event):
    event = make_event()
    booking = book(user_client, event['id'], quantity=3).get_json()
    user_client.delete(f"/api/bookings/{booking['id']}")

    resp = admin_client.post('/api/payment/confirm', json={'booking_id': booking['id']})
    assert resp.status_code == 400
    assert resp.get_json() == {'message': 'Only pending bookings can be confirmed'}
    assert user_client.get(f"/api/bookings/{booking['id']}").get_json()['status'] == 'cancelled'
    assert user_client.get(f"/api/events/{event['id']}").get_json()['current_attendees'] == 0


def test_confirming_twice_is_rejected(admin_client, user_client, make_event):
    event = make_event()
    booking = book(user_client, event['id']).get_json()
    first = admin_client.post('/api/payment/confirm', json={'booking_id': booking['id']})
    reference = first.get_json()['booking']['stripe_payment_intent_id']

    assert admin_client.post('/api/payment/confirm', json={'booking_id': booking['id']}).status_code == 400
    assert user_client.get(f"/api/bookings/{booking['id']}").get_json()['stripe_payment_intent_id'] == reference


def test_confirm_missing_booking_returns_404(admin_client):
    assert admin_client.post('/api/payment/confirm', json={'booking_id': 999}).status_code == 404


def test_booking_visible_to_owner_and_admin_only(admin_client, user_client, other_client, make_event):
    event = make_event()
    booking = book(user_client, event['id']).get_json()
    url = f"/api/bookings/{booking['id']}"

    assert user_client.get(url).status_code == 200
    assert admin_client.get(url).status_code == 200
    assert other_client.get(url).status_code == 403
    assert other_client.delete(url).status_code == 403
    assert other_client.get('/api/bookings/999').status_code == 404


def test_list_bookings_scoped_by_role(admin_client, user_client, other_client, make_event):
    event = make_event()
    book(user_client, event['id'])
    book(other_client, event['id'])

    assert len(user_client.get('/api/bookings').get_json()) == 1
    assert len(admin_client.get('/api/bookings').get_json()) == 2


def test_dashboard_stats(admin_client, user_client, make_event):
    event = make_event()
    booking = book(user_client, event['id']).get_json()
    book(user_client, event['id'])
    admin_client.post('/api/payment/confirm', json={'booking_id': booking['id']})

    stats = user_client.get('/api/dashboard/stats').get_json()
    assert stats['total_attendees'] == 2
    assert stats['total_revenue'] == 50.0
    assert stats['conversion_rate'] == 50


def test_payment_email_confirmation(user_client, make_event):
    event = make_event()
    booking = book(user_client, event['id']).get_json()
    resp = user_client.post('/api/payment/email-confirmation', json={'booking_id': booking['id']})
    assert resp.status_code == 200
    assert resp.get_json()['booking_reference'] == booking['booking_reference']


def test_payment_confirm_requires_admin(user_client, make_event):
    event = make_event()
    booking = book(user_client, event['id']).get_json()
    assert user_client.post('/api/payment/confirm', json={'booking_id': booking['id']}).status_code == 403
