import logging
from decimal import Decimal

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from eventmaster import mailer, payments
from eventmaster.auth import admin_required, public_user
from eventmaster.errors import ApiError, Forbidden, NotFound
from eventmaster.schemas import BookingCreate, BookingRef, ContactCreate, EventCreate, EventUpdate
from eventmaster.storage import get_storage

logger = logging.getLogger(__name__)

bp = Blueprint('api', __name__, url_prefix='/api')

BOOKABLE_STATUSES = ('active', 'upcoming')


def parse(schema):
    return schema.model_validate(request.get_json(silent=True) or {})


def public_event(event):
    data = dict(event)
    if 'creator' in data:
        data['creator'] = public_user(data['creator'])
    return data


def public_booking(booking):
    data = dict(booking)
    if 'user' in data:
        data['user'] = public_user(data['user'])
    return data


def notify(user_id, kind, title, message, **metadata):
    return get_storage().create_notification({
        'user_id': user_id,
        'type': kind,
        'title': title,
        'message': message,
        'metadata': metadata,
    })


def load_own_booking(booking_id):
    """Booking visible to the caller: owner or admin."""
    booking = get_storage().get_booking(booking_id)
    if booking is None:
        raise NotFound('Booking not found')
    if not current_user.is_admin and booking['user_id'] != current_user.id:
        raise Forbidden()
    return booking


def confirm_booking(booking_id, payment_intent_id):
    storage = get_storage()
    booking = storage.get_booking(booking_id)
    if booking is None:
        raise NotFound('Booking not found')
    if booking['status'] != 'pending':
        raise ApiError('Only pending bookings can be confirmed', 400)
    storage.update_booking_status(booking_id, 'confirmed', payment_intent_id)
    booking = storage.get_booking(booking_id)
    if booking['event']:
        mailer.send_booking_confirmation(booking, booking['event'])
        notify(booking['user_id'], 'success', 'Booking confirmed',
               f"Your tickets for {booking['event']['name']} are confirmed.",
               booking_id=booking_id, event_id=booking['event_id'])
    logger.info('Booking %s confirmed (%s)', booking_id, payment_intent_id)
    return booking


# --- Events ---

@bp.get('/events')
def list_events():
    status = request.args.get('status') or None
    is_admin = current_user.is_authenticated and current_user.is_admin
    if not is_admin and not status:
        status = 'active'
    events = get_storage().get_events(
        search=request.args.get('search') or None,
        category=request.args.get('category') or None,
        status=status,
    )
    return jsonify(events)


@bp.get('/events/<int:event_id>')
def get_event(event_id):
    event = get_storage().get_event(event_id)
    if event is None:
        raise NotFound('Event not found')
    return jsonify(public_event(event))


@bp.post('/events')
@admin_required
def create_event():
    payload = parse(EventCreate)
    event = get_storage().create_event({**payload.model_dump(), 'created_by': current_user.id})
    logger.info('Event %s created by %s', event['id'], current_user.id)
    return jsonify(event), 201


@bp.put('/events/<int:event_id>')
@admin_required
def update_event(event_id):
    payload = parse(EventUpdate)
    updates = payload.model_dump(exclude_unset=True)
    storage = get_storage()
    current = storage.get_event(event_id)
    if current is None:
        raise NotFound('Event not found')
    start = updates.get('start_date', current['start_date'])
    end = updates.get('end_date', current['end_date'])
    if end < start:
        raise ApiError('end_date must not be before start_date', 400)
    return jsonify(storage.update_event(event_id, updates))


@bp.delete('/events/<int:event_id>')
@admin_required
def delete_event(event_id):
    get_storage().delete_event(event_id)
    logger.info('Event %s deleted by %s', event_id, current_user.id)
    return '', 204


# --- Bookings ---

@bp.get('/bookings')
@login_required
def list_bookings():
    storage = get_storage()
    if current_user.is_admin:
        bookings = storage.get_bookings()
    else:
        bookings = storage.get_bookings(user_id=current_user.id)
    return jsonify([public_booking(b) for b in bookings])


@bp.get('/bookings/<int:booking_id>')
@login_required
def get_booking(booking_id):
    return jsonify(public_booking(load_own_booking(booking_id)))


@bp.post('/bookings')
@login_required
def create_booking():
    payload = parse(BookingCreate)
    storage = get_storage()
    event = storage.get_event(payload.event_id)
    if event is None:
        raise NotFound('Event not found')
    if event['status'] not in BOOKABLE_STATUSES:
        raise ApiError('Event is not open for booking', 400)
    remaining = event['max_attendees'] - (event['current_attendees'] or 0)
    if payload.quantity > remaining:
        raise ApiError('Not enough tickets available', 400)

    booking = storage.create_booking({
        'event_id': event['id'],
        'user_id': current_user.id,
        'quantity': payload.quantity,
        'total_amount': Decimal(event['ticket_price']) * payload.quantity,
        'status': 'pending',
        'attendee_email': payload.attendee_email or current_user.email,
        'attendee_name': payload.attendee_name or current_user.display_name,
    })
    mailer.send_booking_received(booking, event)
    notify(current_user.id, 'info', 'Booking received',
           f"Booking {booking['booking_reference']} for {event['name']} is awaiting payment.",
           booking_id=booking['id'], event_id=event['id'])
    return jsonify(booking), 201


@bp.delete('/bookings/<int:booking_id>')
@login_required
def cancel_booking(booking_id):
    booking = load_own_booking(booking_id)
    get_storage().update_booking_status(booking_id, 'cancelled')
    if booking['event']:
        mailer.send_booking_cancellation(booking, booking['event'])
        notify(booking['user_id'], 'warning', 'Booking cancelled',
               f"Your booking for {booking['event']['name']} has been cancelled.",
               booking_id=booking_id, event_id=booking['event_id'])
    return jsonify({'message': 'Booking cancelled successfully'})


@bp.get('/dashboard/stats')
@login_required
def dashboard_stats():
    return jsonify(get_storage().get_dashboard_stats())


# --- Payments ---

@bp.post('/create-payment-intent')
@login_required
def create_payment_intent():
    payload = parse(BookingRef)
    booking = load_own_booking(payload.booking_id)
    if booking['status'] != 'pending':
        raise ApiError('Only pending bookings can be paid', 400)
    intent = payments.create_payment_intent(booking)
    get_storage().update_booking_status(booking['id'], 'pending', intent.id)
    return jsonify({'client_secret': intent.client_secret, 'payment_intent_id': intent.id})


@bp.post('/stripe/webhook')
def stripe_webhook():
    event = payments.construct_webhook_event(
        request.get_data(), request.headers.get('Stripe-Signature', ''))
    intent = event['data']['object']
    if event['type'] == 'payment_intent.succeeded':
        # StripeObject supports item access but not dict methods
        try:
            booking_id = intent['metadata']['booking_id']
        except KeyError:
            booking_id = None
        if booking_id:
            try:
                confirm_booking(int(booking_id), intent['id'])
            except ApiError as e:
                logger.warning('Ignoring payment %s for booking %s: %s',
                               intent['id'], booking_id, e.message)
    elif event['type'] == 'payment_intent.payment_failed':
        logger.warning('Payment failed for intent %s', intent['id'])
    return jsonify({'received': True})


@bp.post('/payment/email-confirmation')
@login_required
def email_payment_confirmation():
    payload = parse(BookingRef)
    booking = load_own_booking(payload.booking_id)
    if booking['event'] is None:
        raise NotFound('Event not found')
    mailer.send_payment_instructions(booking, booking['event'])
    return jsonify({
        'message': 'Payment confirmation email sent successfully',
        'booking_reference': booking['booking_reference'],
    })


@bp.post('/payment/confirm')
@admin_required
def confirm_payment():
    payload = parse(BookingRef)
    booking = confirm_booking(payload.booking_id, payments.manual_payment_reference())
    return jsonify({'message': 'Payment confirmed successfully', 'booking': public_booking(booking)})


# --- Notifications ---

@bp.get('/notifications')
@login_required
def list_notifications():
    return jsonify(get_storage().get_notifications(current_user.id))


@bp.patch('/notifications/<int:notification_id>/read')
@login_required
def mark_notification_read(notification_id):
    return jsonify(get_storage().mark_notification_as_read(notification_id, current_user.id))


@bp.patch('/notifications/mark-all-read')
@login_required
def mark_all_notifications_read():
    get_storage().mark_all_notifications_as_read(current_user.id)
    return jsonify({'message': 'All notifications marked as read'})


@bp.delete('/notifications/<int:notification_id>')
@login_required
def delete_notification(notification_id):
    get_storage().delete_notification(notification_id, current_user.id)
    return '', 204


# --- Contact ---

@bp.post('/contact')
def contact():
    payload = parse(ContactCreate)
    message = get_storage().create_contact_message(payload.model_dump())
    mailer.send_contact_notification(message)
    return jsonify({'message': 'Contact message sent successfully'}), 201
