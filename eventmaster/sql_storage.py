import logging
from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from eventmaster.database import db, utcnow
from eventmaster.errors import Conflict, NotFound
from eventmaster.models import Booking, ContactMessage, Event, Notification, User
from eventmaster.storage import (
    EVENT_FIELDS,
    USER_FIELDS,
    Storage,
    generate_booking_reference,
    generate_user_id,
)

logger = logging.getLogger(__name__)


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


class SqlStorage(Storage):
    """Relational backend on Flask-SQLAlchemy (Postgres in production, SQLite locally)."""

    # --- Users ---

    def get_user(self, user_id):
        user = db.session.get(User, user_id)
        return user.to_dict() if user else None

    def get_user_by_email(self, email):
        user = User.query.filter_by(email=email).first()
        return user.to_dict() if user else None

    def get_users(self):
        return [u.to_dict() for u in User.query.order_by(User.created_at.desc()).all()]

    def upsert_user(self, data):
        user = db.session.get(User, data['id'])
        if user is None:
            user = User(id=data['id'])
            db.session.add(user)
        for key, value in data.items():
            if key in USER_FIELDS:
                setattr(user, key, value)
        user.updated_at = utcnow()
        try:
            _commit()
        except IntegrityError:
            raise Conflict('User already exists')
        return user.to_dict()

    def create_user(self, data):
        if User.query.filter_by(email=data['email']).first() is not None:
            raise Conflict('User already exists')
        return self.upsert_user({**data, 'id': generate_user_id()})

    # --- Events ---

    def create_event(self, data):
        event = Event(**{k: data.get(k) for k in EVENT_FIELDS})
        event.status = data.get('status') or 'draft'
        event.current_attendees = 0
        db.session.add(event)
        _commit()
        return event.to_dict()

    def get_events(self, search=None, category=None, status=None):
        query = Event.query
        if search:
            query = query.filter(or_(
                Event.name.icontains(search, autoescape=True),
                Event.description.icontains(search, autoescape=True),
            ))
        if category:
            query = query.filter(Event.category == category)
        if status:
            query = query.filter(Event.status == status)
        return [e.to_dict() for e in query.order_by(Event.start_date, Event.id).all()]

    def get_event(self, event_id):
        event = db.session.get(Event, event_id)
        if event is None:
            return None
        data = event.to_dict()
        data['bookings'] = [b.to_dict() for b in event.bookings]
        data['creator'] = self.get_user(event.created_by)
        return data

    def update_event(self, event_id, updates):
        event = db.session.get(Event, event_id)
        if event is None:
            raise NotFound('Event not found')
        for key, value in updates.items():
            if key in EVENT_FIELDS:
                setattr(event, key, value)
        event.updated_at = utcnow()
        _commit()
        return event.to_dict()

    def delete_event(self, event_id):
        event = db.session.get(Event, event_id)
        if event is None:
            raise NotFound('Event not found')
        db.session.delete(event)
        _commit()

    def update_event_attendee_count(self, event_id):
        event = db.session.get(Event, event_id)
        if event is None:
            return
        total = (db.session.query(func.coalesce(func.sum(Booking.quantity), 0))
                 .filter(Booking.event_id == event_id, Booking.status == 'confirmed')
                 .scalar())
        logger.debug('Event %s attendee count -> %d', event_id, total)
        event.current_attendees = int(total)
        event.updated_at = utcnow()
        _commit()

    # --- Bookings ---

    @staticmethod
    def _with_relations(booking):
        data = booking.to_dict()
        data['event'] = booking.event.to_dict() if booking.event else None
        data['user'] = booking.user.to_dict() if booking.user else None
        return data

    def create_booking(self, data):
        if db.session.get(Event, data['event_id']) is None:
            raise NotFound('Event not found')
        booking = Booking(
            event_id=data['event_id'],
            user_id=data['user_id'],
            quantity=data.get('quantity', 1),
            total_amount=Decimal(data['total_amount']),
            status=data.get('status') or 'pending',
            stripe_payment_intent_id=data.get('stripe_payment_intent_id'),
            booking_reference=generate_booking_reference(),
            attendee_email=data['attendee_email'],
            attendee_name=data['attendee_name'],
        )
        db.session.add(booking)
        _commit()
        self.update_event_attendee_count(booking.event_id)
        return booking.to_dict()

    def get_bookings(self, user_id=None, event_id=None):
        query = Booking.query
        if user_id:
            query = query.filter(Booking.user_id == user_id)
        if event_id:
            query = query.filter(Booking.event_id == event_id)
        bookings = query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()
        return [self._with_relations(b) for b in bookings]

    def get_booking(self, booking_id):
        booking = db.session.get(Booking, booking_id)
        return self._with_relations(booking) if booking else None

    def get_booking_by_reference(self, reference):
        booking = Booking.query.filter_by(booking_reference=reference).first()
        return self._with_relations(booking) if booking else None

    def update_booking_status(self, booking_id, status, payment_intent_id=None):
        booking = db.session.get(Booking, booking_id)
        if booking is None:
            raise NotFound('Booking not found')
        booking.status = status
        if payment_intent_id:
            booking.stripe_payment_intent_id = payment_intent_id
        booking.updated_at = utcnow()
        _commit()
        self.update_event_attendee_count(booking.event_id)
        return booking.to_dict()

    # --- Notifications ---

    def create_notification(self, data):
        notification = Notification(
            user_id=data['user_id'],
            type=data.get('type') or 'info',
            title=data['title'],
            message=data['message'],
            is_read=bool(data.get('is_read', False)),
            extra=data.get('metadata') or {},
        )
        db.session.add(notification)
        _commit()
        return notification.to_dict()

    def get_notifications(self, user_id):
        items = (Notification.query.filter_by(user_id=user_id)
                 .order_by(Notification.created_at.desc(), Notification.id.desc()).all())
        return [n.to_dict() for n in items]

    def mark_notification_as_read(self, notification_id, user_id):
        notification = db.session.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFound('Notification not found')
        notification.is_read = True
        _commit()
        return notification.to_dict()

    def mark_all_notifications_as_read(self, user_id):
        (Notification.query.filter_by(user_id=user_id, is_read=False)
         .update({'is_read': True}))
        _commit()

    def delete_notification(self, notification_id, user_id):
        notification = db.session.get(Notification, notification_id)
        if notification is not None and notification.user_id == user_id:
            db.session.delete(notification)
            _commit()

    # --- Contact messages ---

    def create_contact_message(self, data):
        message = ContactMessage(
            name=data['name'],
            email=data['email'],
            subject=data['subject'],
            message=data['message'],
            status=data.get('status') or 'new',
        )
        db.session.add(message)
        _commit()
        return message.to_dict()

    def get_contact_messages(self):
        items = ContactMessage.query.order_by(
            ContactMessage.created_at.desc(), ContactMessage.id.desc()).all()
        return [m.to_dict() for m in items]

    def update_contact_message_status(self, message_id, status):
        message = db.session.get(ContactMessage, message_id)
        if message is None:
            raise NotFound('Contact message not found')
        message.status = status
        message.updated_at = utcnow()
        _commit()
        return message.to_dict()
