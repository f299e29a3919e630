"""Admin-only endpoints: users, tickets, exports, announcements, analytics."""
import csv
import io
import logging

from flask import Blueprint, Response, jsonify
from flask_login import current_user

from eventmaster import mailer
from eventmaster.auth import admin_required, public_user
from eventmaster.database import utcnow
from eventmaster.errors import ApiError, NotFound
from eventmaster.routes import parse, public_booking
from eventmaster.schemas import BulkNotification, ContactStatusUpdate, RoleUpdate
from eventmaster.storage import get_storage

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__, url_prefix='/api')

TICKET_EXPORT_HEADER = ['Booking ID', 'Event', 'Attendee Name', 'Email', 'Quantity', 'Amount', 'Status', 'Date']
ATTENDEE_EXPORT_HEADER = ['Name', 'Email', 'Event', 'Tickets', 'Date', 'Amount']


def _event_name(booking):
    return (booking.get('event') or {}).get('name', 'Unknown')


def _date(value):
    return value.strftime('%Y-%m-%d') if value else ''


def confirmed_bookings(storage, event_id=None):
    return [b for b in storage.get_bookings(event_id=event_id) if b['status'] == 'confirmed']


def csv_response(header, rows, filename):
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL)
    writer.writerow(header)
    writer.writerows(rows)
    return Response(
        buf.getvalue(),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


# --- Users ---

@bp.get('/users')
@admin_required
def list_users():
    return jsonify([public_user(u) for u in get_storage().get_users()])


@bp.patch('/users/<user_id>/role')
@admin_required
def set_user_role(user_id):
    payload = parse(RoleUpdate)
    storage = get_storage()
    user = storage.get_user(user_id)
    if user is None:
        raise NotFound('User not found')

    if user['is_admin'] and not payload.is_admin:
        admins = [u for u in storage.get_users() if u['is_admin']]
        if len(admins) <= 1:
            raise ApiError('Cannot remove the last remaining admin.', 400)

    user = storage.upsert_user({'id': user_id, 'is_admin': payload.is_admin})
    logger.info('%s set is_admin=%s on %s', current_user.id, payload.is_admin, user_id)
    return jsonify(public_user(user))


# --- Tickets and attendees ---

@bp.get('/tickets')
@admin_required
def list_tickets():
    return jsonify([public_booking(b) for b in get_storage().get_bookings()])


@bp.get('/attendees')
@admin_required
def list_attendees():
    return jsonify([public_booking(b) for b in confirmed_bookings(get_storage())])


@bp.get('/export/tickets')
@admin_required
def export_tickets():
    rows = [
        [b['booking_reference'], _event_name(b), b['attendee_name'], b['attendee_email'],
         b['quantity'], b['total_amount'], b['status'], _date(b['created_at'])]
        for b in get_storage().get_bookings()
    ]
    return csv_response(TICKET_EXPORT_HEADER, rows, 'tickets-export.csv')


@bp.get('/export/attendees')
@admin_required
def export_attendees():
    rows = [
        [b['attendee_name'], b['attendee_email'], _event_name(b), b['quantity'],
         _date(b['created_at']), b['total_amount']]
        for b in confirmed_bookings(get_storage())
    ]
    return csv_response(ATTENDEE_EXPORT_HEADER, rows, 'attendees-export.csv')


# --- Announcements ---

@bp.post('/notifications/bulk')
@admin_required
def bulk_notify():
    payload = parse(BulkNotification)
    storage = get_storage()
    event = None
    if payload.event_id is not None:
        event = storage.get_event(payload.event_id)
        if event is None:
            raise NotFound('Event not found')

    bookings = confirmed_bookings(storage, payload.event_id)
    for booking in bookings:
        storage.create_notification({
            'user_id': booking['user_id'],
            'type': 'admin_announcement',
            'title': payload.title,
            'message': payload.message,
            'metadata': {**payload.metadata, 'sent_by': current_user.id,
                         'event_id': booking['event_id'], 'booking_id': booking['id']},
        })
        if not mailer.send_announcement(booking['attendee_email'], payload.title,
                                        payload.message, booking['event']):
            logger.warning('Announcement email to %s was not delivered', booking['attendee_email'])

    logger.info('Announcement "%s" sent for %d bookings', payload.title, len(bookings))
    return jsonify({'message': 'Notifications sent successfully', 'count': len(bookings)})


# --- Analytics ---

@bp.get('/analytics/revenue')
@admin_required
def revenue_analytics():
    return jsonify(get_storage().get_revenue_analytics())


@bp.get('/analytics/attendees')
@admin_required
def attendee_analytics():
    return jsonify(get_storage().get_attendee_analytics())


@bp.get('/analytics/events')
@admin_required
def event_analytics():
    return jsonify(get_storage().get_event_analytics())


@bp.get('/reports/generate')
@admin_required
def generate_report():
    storage = get_storage()
    return jsonify({
        'generated_at': utcnow(),
        'summary': storage.get_dashboard_stats(),
        'revenue': storage.get_revenue_analytics(),
        'attendees': storage.get_attendee_analytics(),
        'events': storage.get_event_analytics(),
    })


# --- Contact messages ---

@bp.get('/contact-messages')
@admin_required
def list_contact_messages():
    return jsonify(get_storage().get_contact_messages())


@bp.patch('/contact-messages/<int:message_id>')
@admin_required
def update_contact_message(message_id):
    payload = parse(ContactStatusUpdate)
    return jsonify(get_storage().update_contact_message_status(message_id, payload.status))
