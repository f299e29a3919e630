from eventmaster.database import db, utcnow


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(64), primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    username = db.Column(db.String(80), unique=True, nullable=True)
    password_hash = db.Column(db.String(256), nullable=True)  # local auth only
    first_name = db.Column(db.String(120), nullable=True)
    last_name = db.Column(db.String(120), nullable=True)
    profile_image_url = db.Column(db.String(500), nullable=True)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    stripe_customer_id = db.Column(db.String(120), nullable=True)
    auth_provider = db.Column(db.String(20), default='local', nullable=False)
    auth_provider_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    bookings = db.relationship('Booking', backref='user', lazy=True)

    def __repr__(self):
        return f'<User {self.email}>'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'username': self.username,
            'password_hash': self.password_hash,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'profile_image_url': self.profile_image_url,
            'is_admin': bool(self.is_admin),
            'stripe_customer_id': self.stripe_customer_id,
            'auth_provider': self.auth_provider,
            'auth_provider_id': self.auth_provider_id,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }


class Event(db.Model):
    __tablename__ = 'events'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    location = db.Column(db.String(255), nullable=False)
    ticket_price = db.Column(db.Numeric(10, 2), nullable=False)
    max_attendees = db.Column(db.Integer, nullable=False)
    current_attendees = db.Column(db.Integer, default=0, nullable=False)
    # draft, active, upcoming, completed, cancelled
    status = db.Column(db.String(50), default='draft', nullable=False)
    image_url = db.Column(db.String(500), nullable=True)
    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    bookings = db.relationship(
        'Booking', backref='event', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Event {self.id} {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'location': self.location,
            'ticket_price': self.ticket_price,
            'max_attendees': self.max_attendees,
            'current_attendees': self.current_attendees or 0,
            'status': self.status,
            'image_url': self.image_url,
            'created_by': self.created_by,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey('events.id'), nullable=False)
    user_id = db.Column(db.String(64), db.ForeignKey('users.id'), nullable=False)
    quantity = db.Column(db.Integer, default=1, nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    # pending, confirmed, cancelled, refunded
    status = db.Column(db.String(50), default='pending', nullable=False)
    stripe_payment_intent_id = db.Column(db.String(255), nullable=True)
    booking_reference = db.Column(db.String(20), unique=True, nullable=False)
    attendee_email = db.Column(db.String(255), nullable=False)
    attendee_name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'user_id': self.user_id,
            'quantity': self.quantity,
            'total_amount': self.total_amount,
            'status': self.status,
            'stripe_payment_intent_id': self.stripe_payment_intent_id,
            'booking_reference': self.booking_reference,
            'attendee_email': self.attendee_email,
            'attendee_name': self.attendee_name,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    type = db.Column(db.String(50), default='info', nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    # "metadata" is reserved on declarative models
    extra = db.Column('metadata', db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'is_read': bool(self.is_read),
            'metadata': self.extra or {},
            'created_at': self.created_at,
        }


class ContactMessage(db.Model):
    __tablename__ = 'contact_messages'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(50), default='new', nullable=False)  # new, read, responded
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'subject': self.subject,
            'message': self.message,
            'status': self.status,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }
