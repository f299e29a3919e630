import logging
import time
from decimal import ROUND_HALF_UP, Decimal

import stripe
from flask import current_app

from eventmaster.errors import ApiError

logger = logging.getLogger(__name__)


def stripe_enabled():
    return bool(current_app.config.get('STRIPE_SECRET_KEY'))


def to_minor_units(amount):
    """Decimal dollars -> integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def manual_payment_reference():
    return f'manual_{int(time.time() * 1000)}'


def create_payment_intent(booking):
    if not stripe_enabled():
        raise ApiError('Online payments are not configured', 503)
    try:
        intent = stripe.PaymentIntent.create(
            api_key=current_app.config['STRIPE_SECRET_KEY'],
            amount=to_minor_units(booking['total_amount']),
            currency=current_app.config['STRIPE_CURRENCY'],
            receipt_email=booking['attendee_email'],
            metadata={
                'booking_id': str(booking['id']),
                'booking_reference': booking['booking_reference'],
            },
        )
    except stripe.StripeError as e:
        logger.error('Stripe rejected payment intent for booking %s: %s', booking['id'], e)
        raise ApiError('Payment provider error', 502)
    logger.info('Created payment intent %s for booking %s', intent.id, booking['id'])
    return intent


def construct_webhook_event(payload, signature):
    secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')
    if not secret:
        raise ApiError('Stripe webhooks are not configured', 503)
    try:
        return stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError):
        raise ApiError('Invalid webhook signature', 400)
