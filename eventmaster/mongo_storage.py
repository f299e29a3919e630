"""MongoDB backend.

Documents keep the same integer ids as the SQL tables (allocated from a
``counters`` collection), so records can move between backends and routes
never need to know which one is active.  Money is stored as decimal strings.
"""
import logging
import re
from decimal import Decimal

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from eventmaster.database import utcnow
from eventmaster.errors import Conflict, NotFound
from eventmaster.storage import (
    EVENT_FIELDS,
    USER_FIELDS,
    Storage,
    generate_booking_reference,
    generate_user_id,
)

logger = logging.getLogger(__name__)

MONEY_FIELDS = ('ticket_price', 'total_amount')


def build_event_query(search=None, category=None, status=None):
    query = {}
    if search:
        pattern = re.escape(search)
        query['$or'] = [
            {'name': {'$regex': pattern, '$options': 'i'}},
            {'description': {'$regex': pattern, '$options': 'i'}},
        ]
    if category:
        query['category'] = category
    if status:
        query['status'] = status
    return query


def build_booking_query(user_id=None, event_id=None):
    query = {}
    if user_id:
        query['user_id'] = user_id
    if event_id:
        query['event_id'] = event_id
    return query


def to_document(record):
    """Record dict -> Mongo document (``id`` becomes ``_id``, money to str)."""
    doc = {k: v for k, v in record.items() if k != 'id'}
    if 'id' in record:
        doc['_id'] = record['id']
    for key in MONEY_FIELDS:
        if doc.get(key) is not None:
            doc[key] = str(doc[key])
    return doc


def from_document(doc):
    if doc is None:
        return None
    record = {k: v for k, v in doc.items() if k != '_id'}
    record['id'] = doc['_id']
    for key in MONEY_FIELDS:
        if record.get(key) is not None:
            record[key] = Decimal(record[key])
    return record


class MongoStorage(Storage):

    def __init__(self, database):
        self.db = database
        self.users = database['users']
        self.events = database['events']
        self.bookings = database['bookings']
        self.notifications = database['notifications']
        self.contact_messages = database['contact_messages']
        self.counters = database['counters']
        self.ensure_indexes()

    @classmethod
    def from_config(cls, config):
        client = MongoClient(
            config['MONGODB_URL'],
            serverSelectionTimeoutMS=30000,
            socketTimeoutMS=45000,
        )
        logger.info('Using MongoDB database %s', config['MONGODB_DB'])
        return cls(client[config['MONGODB_DB']])

    def ensure_indexes(self):
        self.users.create_index([('email', ASCENDING)], unique=True)
        # usernames are optional; only string values take part in uniqueness
        self.users.create_index([('username', ASCENDING)], unique=True,
                                partialFilterExpression={'username': {'$type': 'string'}})
        self.events.create_index([('start_date', ASCENDING)])
        self.bookings.create_index([('booking_reference', ASCENDING)], unique=True)
        self.bookings.create_index([('event_id', ASCENDING), ('status', ASCENDING)])
        self.bookings.create_index([('user_id', ASCENDING), ('created_at', DESCENDING)])
        self.notifications.create_index([('user_id', ASCENDING), ('created_at', DESCENDING)])

    def _next_id(self, name):
        counter = self.counters.find_one_and_update(
            {'_id': name},
            {'$inc': {'seq': 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter['seq']

    def load_documents(self, collection, records):
        """Write records with their existing ids (used when migrating from SQL)."""
        col = self.db[collection]
        highest = 0
        for record in records:
            col.replace_one({'_id': record['id']}, to_document(record), upsert=True)
            if isinstance(record['id'], int):
                highest = max(highest, record['id'])
        if highest:
            self.counters.update_one({'_id': collection}, {'$max': {'seq': highest}}, upsert=True)
        return len(records)

    # --- Users ---

    def get_user(self, user_id):
        return from_document(self.users.find_one({'_id': user_id}))

    def get_user_by_email(self, email):
        return from_document(self.users.find_one({'email': email}))

    def get_users(self):
        return [from_document(d) for d in self.users.find().sort('created_at', DESCENDING)]

    def upsert_user(self, data):
        now = utcnow()
        updates = {k: v for k, v in data.items() if k in USER_FIELDS}
        updates['updated_at'] = now
        # $setOnInsert must not touch keys that $set already writes
        defaults = {f: None for f in USER_FIELDS if f not in updates}
        defaults['created_at'] = now
        if 'is_admin' in defaults:
            defaults['is_admin'] = False
        if 'auth_provider' in defaults:
            defaults['auth_provider'] = 'local'
        try:
            doc = self.users.find_one_and_update(
                {'_id': data['id']},
                {'$set': updates, '$setOnInsert': defaults},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise Conflict('User already exists')
        return from_document(doc)

    def create_user(self, data):
        if self.users.find_one({'email': data['email']}) is not None:
            raise Conflict('User already exists')
        return self.upsert_user({**data, 'id': generate_user_id()})

    # --- Events ---

    def create_event(self, data):
        now = utcnow()
        record = {f: data.get(f) for f in EVENT_FIELDS}
        record.update(
            id=self._next_id('events'),
            status=data.get('status') or 'draft',
            current_attendees=0,
            created_at=now,
            updated_at=now,
        )
        self.events.insert_one(to_document(record))
        return record

    def get_events(self, search=None, category=None, status=None):
        cursor = self.events.find(build_event_query(search, category, status))
        return [from_document(d) for d in cursor.sort([('start_date', ASCENDING), ('_id', ASCENDING)])]

    def get_event(self, event_id):
        event = from_document(self.events.find_one({'_id': event_id}))
        if event is None:
            return None
        event['bookings'] = [from_document(d) for d in self.bookings.find({'event_id': event_id})]
        event['creator'] = self.get_user(event['created_by'])
        return event

    def update_event(self, event_id, updates):
        changes = to_document({k: v for k, v in updates.items() if k in EVENT_FIELDS})
        changes['updated_at'] = utcnow()
        doc = self.events.find_one_and_update(
            {'_id': event_id}, {'$set': changes}, return_document=ReturnDocument.AFTER)
        if doc is None:
            raise NotFound('Event not found')
        return from_document(doc)

    def delete_event(self, event_id):
        result = self.events.delete_one({'_id': event_id})
        if result.deleted_count == 0:
            raise NotFound('Event not found')
        self.bookings.delete_many({'event_id': event_id})

    def update_event_attendee_count(self, event_id):
        rows = list(self.bookings.aggregate([
            {'$match': {'event_id': event_id, 'status': 'confirmed'}},
            {'$group': {'_id': None, 'total': {'$sum': '$quantity'}}},
        ]))
        total = rows[0]['total'] if rows else 0
        result = self.events.update_one(
            {'_id': event_id},
            {'$set': {'current_attendees': total, 'updated_at': utcnow()}},
        )
        if result.matched_count == 0:
            logger.warning('Event %s not found for attendee count update', event_id)
        else:
            logger.debug('Event %s attendee count -> %d', event_id, total)

    # --- Bookings ---

    def _with_relations(self, booking):
        booking['event'] = from_document(self.events.find_one({'_id': booking['event_id']}))
        booking['user'] = self.get_user(booking['user_id'])
        return booking

    def create_booking(self, data):
        if self.events.find_one({'_id': data['event_id']}, {'_id': 1}) is None:
            raise NotFound('Event not found')
        now = utcnow()
        record = {
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
        try:
            self.bookings.insert_one(to_document(record))
        except DuplicateKeyError:
            raise Conflict('Booking reference already exists')
        self.update_event_attendee_count(record['event_id'])
        return record

    def get_bookings(self, user_id=None, event_id=None):
        cursor = self.bookings.find(build_booking_query(user_id, event_id))
        cursor = cursor.sort([('created_at', DESCENDING), ('_id', DESCENDING)])
        return [self._with_relations(from_document(d)) for d in cursor]

    def get_booking(self, booking_id):
        doc = self.bookings.find_one({'_id': booking_id})
        return self._with_relations(from_document(doc)) if doc else None

    def get_booking_by_reference(self, reference):
        doc = self.bookings.find_one({'booking_reference': reference})
        return self._with_relations(from_document(doc)) if doc else None

    def update_booking_status(self, booking_id, status, payment_intent_id=None):
        changes = {'status': status, 'updated_at': utcnow()}
        if payment_intent_id:
            changes['stripe_payment_intent_id'] = payment_intent_id
        doc = self.bookings.find_one_and_update(
            {'_id': booking_id}, {'$set': changes}, return_document=ReturnDocument.AFTER)
        if doc is None:
            raise NotFound('Booking not found')
        self.update_event_attendee_count(doc['event_id'])
        return from_document(doc)

    # --- Notifications ---

    def create_notification(self, data):
        record = {
            'id': self._next_id('notifications'),
            'user_id': data['user_id'],
            'type': data.get('type') or 'info',
            'title': data['title'],
            'message': data['message'],
            'is_read': bool(data.get('is_read', False)),
            'metadata': data.get('metadata') or {},
            'created_at': utcnow(),
        }
        self.notifications.insert_one(to_document(record))
        return record

    def get_notifications(self, user_id):
        cursor = self.notifications.find({'user_id': user_id})
        return [from_document(d) for d in cursor.sort([('created_at', DESCENDING), ('_id', DESCENDING)])]

    def mark_notification_as_read(self, notification_id, user_id):
        doc = self.notifications.find_one_and_update(
            {'_id': notification_id, 'user_id': user_id},
            {'$set': {'is_read': True}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFound('Notification not found')
        return from_document(doc)

    def mark_all_notifications_as_read(self, user_id):
        self.notifications.update_many(
            {'user_id': user_id, 'is_read': False}, {'$set': {'is_read': True}})

    def delete_notification(self, notification_id, user_id):
        self.notifications.delete_one({'_id': notification_id, 'user_id': user_id})

    # --- Contact messages ---

    def create_contact_message(self, data):
        now = utcnow()
        record = {
            'id': self._next_id('contact_messages'),
            'name': data['name'],
            'email': data['email'],
            'subject': data['subject'],
            'message': data['message'],
            'status': data.get('status') or 'new',
            'created_at': now,
            'updated_at': now,
        }
        self.contact_messages.insert_one(to_document(record))
        return record

    def get_contact_messages(self):
        cursor = self.contact_messages.find().sort([('created_at', DESCENDING), ('_id', DESCENDING)])
        return [from_document(d) for d in cursor]

    def update_contact_message_status(self, message_id, status):
        doc = self.contact_messages.find_one_and_update(
            {'_id': message_id},
            {'$set': {'status': status, 'updated_at': utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFound('Contact message not found')
        return from_document(doc)
