"""Storage interface shared by every persistence backend.

Routes only talk to a :class:`Storage`; the concrete backend is picked by
``STORAGE_BACKEND`` when the app is created.  All backends hand records back
as plain dicts with the same keys, so a booking read from MongoDB looks the
same as one read from Postgres.
"""
import logging
import secrets
import string
import time
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from decimal import Decimal

from flask import current_app

from eventmaster.database import utcnow
from eventmaster.errors import Conflict, NotFound

logger = logging.getLogger(__name__)

EVENT_STATUSES = ('draft', 'active', 'upcoming', 'completed', 'cancelled')
BOOKING_STATUSES = ('pending', 'confirmed', 'cancelled', 'refunded')
NOTIFICATION_TYPES = ('info', 'success', 'warning', 'error', 'admin_announcement')
CONTACT_STATUSES = ('new', 'read', 'responded')

USER_FIELDS = (
    'email', 'username', 'password_hash', 'first_name', 'last_name',
    'profile_image_url', 'is_admin', 'stripe_customer_id', 'auth_provider',
    'auth_provider_id',
)
EVENT_FIELDS = (
    'name', 'description', 'category', 'start_date', 'end_date', 'location',
    'ticket_price', 'max_attendees', 'status', 'image_url', 'created_by',
)

SAMPLE_EVENTS = [
    {
        'name': 'AI Revolution Conference 2025',
        'description': 'Join industry leaders to explore the latest in artificial '
                       'intelligence, machine learning, and the future of technology.',
        'category': 'Technology',
        'start_date': datetime(2025, 9, 15, 9, 0),
        'end_date': datetime(2025, 9, 15, 17, 0),
        'location': 'San Francisco Convention Center',
        'ticket_price': Decimal('299.00'),
        'max_attendees': 500,
        'status': 'active',
        'image_url': 'https://images.unsplash.com/photo-1485827404703-89b55fcc595e?w=800',
    },
    {
        'name': 'Web Development Bootcamp',
        'description': 'Intensive workshop covering React, Node.js, and modern '
                       'full-stack development practices.',
        'category': 'Technology',
        'start_date': datetime(2025, 8, 20, 10, 0),
        'end_date': datetime(2025, 8, 22, 16, 0),
        'location': 'Tech Hub Downtown',
        'ticket_price': Decimal('149.00'),
        'max_attendees': 50,
        'status': 'active',
        'image_url': 'https://images.unsplash.com/photo-1461749280684-dccba630e2f6?w=800',
    },
    {
        'name': 'Mobile App Development Summit',
        'description': 'Learn the latest in iOS and Android development with '
                       'hands-on workshops and expert speakers.',
        'category': 'Technology',
        'start_date': datetime(2025, 10, 5, 9, 0),
        'end_date': datetime(2025, 10, 6, 17, 0),
        'location': 'Innovation Center',
        'ticket_price': Decimal('199.00'),
        'max_attendees': 200,
        'status': 'upcoming',
        'image_url': 'https://images.unsplash.com/photo-1551650975-87deedd944c3?w=800',
    },
]

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def generate_user_id():
    return f'user_{uuid.uuid4().hex[:16]}'


def generate_booking_reference():
    """``BK`` + epoch millis + four random characters (fits in 20 chars)."""
    suffix = ''.join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(4))
    return f'BK{int(time.time() * 1000)}{suffix}'


def confirmed_attendees(bookings):
    """Sum of quantities over confirmed bookings."""
    return sum(b['quantity'] for b in bookings if b['status'] == 'confirmed')


def matches_search(event, search):
    needle = search.lower()
    return (needle in (event.get('name') or '').lower()
            or needle in (event.get('description') or '').lower())


class Storage(ABC):

    # --- Users ---

    @abstractmethod
    def get_user(self, user_id):
        ...

    @abstractmethod
    def get_user_by_email(self, email):
        ...

    @abstractmethod
    def get_users(self):
        ...

    @abstractmethod
    def upsert_user(self, data):
        """Insert or merge a user keyed by ``data['id']``."""

    @abstractmethod
    def create_user(self, data):
        """Create a user with a generated id. Raises Conflict on duplicate email."""

    # --- Events ---

    @abstractmethod
    def create_event(self, data):
        ...

    @abstractmethod
    def get_events(self, search=None, category=None, status=None):
        ...

    @abstractmethod
    def get_event(self, event_id):
        """Event with ``bookings`` and ``creator`` attached, or None."""

    @abstractmethod
    def update_event(self, event_id, updates):
        ...

    @abstractmethod
    def delete_event(self, event_id):
        """Delete an event and its bookings."""

    @abstractmethod
    def update_event_attendee_count(self, event_id):
        ...

    # --- Bookings ---

    @abstractmethod
    def create_booking(self, data):
        ...

    @abstractmethod
    def get_bookings(self, user_id=None, event_id=None):
        ...

    @abstractmethod
    def get_booking(self, booking_id):
        ...

    @abstractmethod
    def get_booking_by_reference(self, reference):
        ...

    @abstractmethod
    def update_booking_status(self, booking_id, status, payment_intent_id=None):
        ...

    # --- Notifications ---

    @abstractmethod
    def create_notification(self, data):
        ...

    @abstractmethod
    def get_notifications(self, user_id):
        ...

    @abstractmethod
    def mark_notification_as_read(self, notification_id, user_id):
        ...

    @abstractmethod
    def mark_all_notifications_as_read(self, user_id):
        ...

    @abstractmethod
    def delete_notification(self, notification_id, user_id):
        ...

    # --- Contact messages ---

    @abstractmethod
    def create_contact_message(self, data):
        ...

    @abstractmethod
    def get_contact_messages(self):
        ...

    @abstractmethod
    def update_contact_message_status(self, message_id, status):
        ...

    # --- Analytics (backend independent) ---

    def get_dashboard_stats(self):
        events = self.get_events()
        bookings = self.get_bookings()
        confirmed = [b for b in bookings if b['status'] == 'confirmed']
        revenue = sum((Decimal(b['total_amount']) for b in confirmed), Decimal('0'))
        conversion = (len(confirmed) / len(bookings) * 100) if bookings else 0
        return {
            'total_events': len([e for e in events if e['status'] != 'draft']),
            'total_attendees': confirmed_attendees(confirmed),
            'total_revenue': float(revenue),
            'conversion_rate': round(conversion),
        }

    def get_revenue_analytics(self):
        by_event = {}
        by_month = defaultdict(Decimal)
        for booking in self.get_bookings():
            if booking['status'] != 'confirmed':
                continue
            amount = Decimal(booking['total_amount'])
            event = booking.get('event') or {}
            row = by_event.setdefault(booking['event_id'], {
                'event_id': booking['event_id'],
                'event_name': event.get('name', 'Unknown'),
                'revenue': Decimal('0'),
                'tickets_sold': 0,
            })
            row['revenue'] += amount
            row['tickets_sold'] += booking['quantity']
            if booking.get('created_at'):
                by_month[booking['created_at'].strftime('%Y-%m')] += amount

        events = sorted(by_event.values(), key=lambda r: r['revenue'], reverse=True)
        for row in events:
            row['revenue'] = float(row['revenue'])
        return {
            'total_revenue': sum(r['revenue'] for r in events),
            'by_event': events,
            'by_month': [{'month': month, 'revenue': float(total)}
                         for month, total in sorted(by_month.items())],
        }

    def get_attendee_analytics(self):
        rows = []
        for event in self.get_events():
            capacity = event['max_attendees'] or 0
            attendees = event.get('current_attendees') or 0
            rows.append({
                'event_id': event['id'],
                'event_name': event['name'],
                'attendees': attendees,
                'capacity': capacity,
                'utilization': round(attendees / capacity * 100, 1) if capacity else 0.0,
            })
        rows.sort(key=lambda r: r['attendees'], reverse=True)
        return {
            'total_attendees': sum(r['attendees'] for r in rows),
            'by_event': rows,
        }

    def get_event_analytics(self):
        by_status = defaultdict(int)
        by_category = defaultdict(int)
        events = self.get_events()
        for event in events:
            by_status[event['status']] += 1
            by_category[event['category']] += 1
        return {
            'total_events': len(events),
            'by_status': dict(by_status),
            'by_category': dict(by_category),
        }

    # --- Seed data ---

    def create_sample_events(self, created_by):
        if self.get_events():
            return []
        created = [self.create_event({**sample, 'created_by': created_by})
                   for sample in SAMPLE_EVENTS]
        logger.info('Created %d sample events', len(created))
        return created


class MemoryStorage(Storage):
    """Dict-backed storage for demos and tests; nothing survives a restart."""

    def __init__(self):
        self.users = {}
        self.events = {}
        self.bookings = {}
        self.notifications = {}
        self.contact_messages = {}
        self._ids = defaultdict(int)

    def _next_id(self, name):
        self._ids[name] += 1
        return self._ids[name]

    # --- Users ---

    def get_user(self, user_id):
        user = self.users.get(user_id)
        return dict(user) if user else None

    def get_user_by_email(self, email):
        for user in self.users.values():
            if user['email'] == email:
                return dict(user)
        return None

    def get_users(self):
        users = sorted(self.users.values(), key=lambda u: u['created_at'], reverse=True)
        return [dict(u) for u in users]

    def upsert_user(self, data):
        now = utcnow()
        existing = self.users.get(data['id'])
        if existing is None:
            user = {f: None for f in USER_FIELDS}
            user.update(id=data['id'], is_admin=False, auth_provider='local', created_at=now)
        else:
            user = dict(existing)
        user.update({k: v for k, v in data.items() if k in USER_FIELDS})
        if user['username'] and any(u['username'] == user['username'] and u['id'] != user['id']
                                    for u in self.users.values()):
            raise Conflict('User already exists')
        user['updated_at'] = now
        self.users[user['id']] = user
        return dict(user)

    def create_user(self, data):
        if self.get_user_by_email(data['email']):
            raise Conflict('User already exists')
        return self.upsert_user({**data, 'id': generate_user_id()})

    # --- Events ---

    def create_event(self, data):
        now = utcnow()
        event = {f: data.get(f) for f in EVENT_FIELDS}
        event.update(
            id=self._next_id('events'),
            status=data.get('status') or 'draft',
            current_attendees=0,
            created_at=now,
            updated_at=now,
        )
        self.events[event['id']] = event
        return dict(event)

    def get_events(self, search=None, category=None, status=None):
        events = list(self.events.values())
        if search:
            events = [e for e in events if matches_search(e, search)]
        if category:
            events = [e for e in events if e['category'] == category]
        if status:
            events = [e for e in events if e['status'] == status]
        events.sort(key=lambda e: e['start_date'])
        return [dict(e) for e in events]

    def get_event(self, event_id):
        event = self.events.get(event_id)
        if event is None:
            return None
        bookings = [dict(b) for b in self.bookings.values() if b['event_id'] == event_id]
        return {**event, 'bookings': bookings, 'creator': self.get_user(event['created_by'])}

    def update_event(self, event_id, updates):
        event = self.events.get(event_id)
        if event is None:
            raise NotFound('Event not found')
        event.update({k: v for k, v in updates.items() if k in EVENT_FIELDS})
        event['updated_at'] = utcnow()
        return dict(event)

    def delete_event(self, event_id):
        if self.events.pop(event_id, None) is None:
            raise NotFound('Event not found')
        for booking_id in [i for i, b in self.bookings.items() if b['event_id'] == event_id]:
            del self.bookings[booking_id]

    def update_event_attendee_count(self, event_id):
        event = self.events.get(event_id)
        if event is None:
            return
        total = confirmed_attendees(b for b in self.bookings.values() if b['event_id'] == event_id)
        logger.debug('Event %s attendee count -> %d', event_id, total)
        event['current_attendees'] = total
        event['updated_at'] = utcnow()

    # --- Bookings ---

    def _with_relations(self, booking):
        return {
            **booking,
            'event': dict(self.events[booking['event_id']]) if booking['event_id'] in self.events else None,
            'user': self.get_user(booking['user_id']),
        }

    def create_booking(self, data):
        if data['event_id'] not in self.events:
            raise NotFound('Event not found')
        now = utcnow()
        booking = {
            'id': self._next_id('bookings'),
            'event_id': data['event_id'],
            'user_id': data['user_id'],
            'quantity': data.get('quantity', 1),
            'total_amount': Decimal(data['total_amount']),
            'status': data.get('status') or 'pending',
            'stripe_payment_intent_id': data.get('stripe_payment_intent_id'),
            'booking_reference': generate_booking_reference(),
            'attendee_email': data['attendee_email'],
            'attendee_name': data['attendee_name'],
            'created_at': now,
            'updated_at': now,
        }
        self.bookings[booking['id']] = booking
        self.update_event_attendee_count(booking['event_id'])
        return dict(booking)

    def get_bookings(self, user_id=None, event_id=None):
        bookings = list(self.bookings.values())
        if user_id:
            bookings = [b for b in bookings if b['user_id'] == user_id]
        if event_id:
            bookings = [b for b in bookings if b['event_id'] == event_id]
        bookings.sort(key=lambda b: (b['created_at'], b['id']), reverse=True)
        return [self._with_relations(b) for b in bookings]

    def get_booking(self, booking_id):
        booking = self.bookings.get(booking_id)
        return self._with_relations(booking) if booking else None

    def get_booking_by_reference(self, reference):
        for booking in self.bookings.values():
            if booking['booking_reference'] == reference:
                return self._with_relations(booking)
        return None

    def update_booking_status(self, booking_id, status, payment_intent_id=None):
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise NotFound('Booking not found')
        booking['status'] = status
        if payment_intent_id:
            booking['stripe_payment_intent_id'] = payment_intent_id
        booking['updated_at'] = utcnow()
        self.update_event_attendee_count(booking['event_id'])
        return dict(booking)

    # --- Notifications ---

    def create_notification(self, data):
        notification = {
            'id': self._next_id('notifications'),
            'user_id': data['user_id'],
            'type': data.get('type') or 'info',
            'title': data['title'],
            'message': data['message'],
            'is_read': bool(data.get('is_read', False)),
            'metadata': data.get('metadata') or {},
            'created_at': utcnow(),
        }
        self.notifications[notification['id']] = notification
        return dict(notification)

    def get_notifications(self, user_id):
        items = [n for n in self.notifications.values() if n['user_id'] == user_id]
        items.sort(key=lambda n: (n['created_at'], n['id']), reverse=True)
        return [dict(n) for n in items]

    def mark_notification_as_read(self, notification_id, user_id):
        notification = self.notifications.get(notification_id)
        if notification is None or notification['user_id'] != user_id:
            raise NotFound('Notification not found')
        notification['is_read'] = True
        return dict(notification)

    def mark_all_notifications_as_read(self, user_id):
        for notification in self.notifications.values():
            if notification['user_id'] == user_id:
                notification['is_read'] = True

    def delete_notification(self, notification_id, user_id):
        notification = self.notifications.get(notification_id)
        if notification and notification['user_id'] == user_id:
            del self.notifications[notification_id]

    # --- Contact messages ---

    def create_contact_message(self, data):
        now = utcnow()
        message = {
            'id': self._next_id('contact_messages'),
            'name': data['name'],
            'email': data['email'],
            'subject': data['subject'],
            'message': data['message'],
            'status': data.get('status') or 'new',
            'created_at': now,
            'updated_at': now,
        }
        self.contact_messages[message['id']] = message
        return dict(message)

    def get_contact_messages(self):
        items = sorted(self.contact_messages.values(),
                       key=lambda m: (m['created_at'], m['id']), reverse=True)
        return [dict(m) for m in items]

    def update_contact_message_status(self, message_id, status):
        message = self.contact_messages.get(message_id)
        if message is None:
            raise NotFound('Contact message not found')
        message['status'] = status
        message['updated_at'] = utcnow()
        return dict(message)


def create_storage(app):
    """Build the backend named by ``STORAGE_BACKEND``."""
    backend = app.config.get('STORAGE_BACKEND', 'sql')
    if backend == 'sql':
        from eventmaster.sql_storage import SqlStorage
        return SqlStorage()
    if backend == 'mongo':
        from eventmaster.mongo_storage import MongoStorage
        return MongoStorage.from_config(app.config)
    if backend == 'memory':
        return MemoryStorage()
    raise ValueError(f'Unknown STORAGE_BACKEND: {backend!r}')


def get_storage():
    return current_app.extensions['eventmaster.storage']
