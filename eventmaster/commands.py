"""Maintenance commands registered on ``flask``."""
import logging

import click
from flask import current_app

from eventmaster.auth import ensure_default_users
from eventmaster.database import db
from eventmaster.models import Booking, ContactMessage, Event, Notification, User
from eventmaster.storage import get_storage

logger = logging.getLogger(__name__)


def recount_all(storage):
    """Recompute every event's attendee count; returns (name, count) pairs."""
    totals = []
    for event in storage.get_events():
        storage.update_event_attendee_count(event['id'])
        totals.append((event['name'], storage.get_event(event['id'])['current_attendees']))
    return totals


def seed(storage, config):
    ensure_default_users(storage, config)
    admin = storage.get_user_by_email(config['ADMIN_EMAIL'].lower()) if config.get('ADMIN_EMAIL') else None
    if admin is not None and config.get('SEED_SAMPLE_EVENTS'):
        storage.create_sample_events(admin['id'])


def copy_sql_to_mongo(target):
    """Copy every SQL row into ``target`` (a MongoStorage) keeping ids."""
    counts = {}
    for collection, model in (('users', User), ('events', Event), ('bookings', Booking),
                              ('notifications', Notification), ('contact_messages', ContactMessage)):
        records = [row.to_dict() for row in model.query.all()]
        counts[collection] = target.load_documents(collection, records)
        logger.info('Migrated %d %s', counts[collection], collection)
    recount_all(target)
    return counts


def register_commands(app):

    @app.cli.command('init-db')
    def init_db():
        """Create tables, default users and sample events."""
        if current_app.config['STORAGE_BACKEND'] == 'sql':
            db.create_all()
        seed(get_storage(), current_app.config)
        click.echo('Database initialised.')

    @app.cli.command('recount-attendees')
    def recount_attendees():
        """Recompute current_attendees from confirmed bookings."""
        for name, total in recount_all(get_storage()):
            click.echo(f'{name}: {total} attendees')

    @app.cli.command('migrate-to-mongo')
    def migrate_to_mongo():
        """Copy the SQL database into MongoDB."""
        from eventmaster.mongo_storage import MongoStorage
        target = MongoStorage.from_config(current_app.config)
        counts = copy_sql_to_mongo(target)
        for collection, total in counts.items():
            click.echo(f'{collection}: {total}')
        click.echo('Migration complete.')
