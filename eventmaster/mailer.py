"""SMTP email side channel.

Mail is best effort: a failed send is logged and reported as ``False`` but
never fails the request that triggered it.
"""
import logging
import smtplib
from email.message import EmailMessage

from flask import current_app, render_template

logger = logging.getLogger(__name__)


def send_email(to_email, subject, html, reply_to=None):
    cfg = current_app.config
    if not cfg.get('EMAIL_ENABLED') or not cfg.get('EMAIL_USER'):
        logger.info('Email disabled, skipped "%s" to %s', subject, to_email)
        return False

    msg = EmailMessage()
    msg['Subject'] = subject
    msg['From'] = f"{cfg['EMAIL_FROM_NAME']} <{cfg['EMAIL_USER']}>"
    msg['To'] = to_email
    if reply_to:
        msg['Reply-To'] = reply_to
    msg.set_content('This message requires an HTML capable mail client.')
    msg.add_alternative(html, subtype='html')

    try:
        with smtplib.SMTP(cfg['SMTP_HOST'], cfg['SMTP_PORT'], timeout=15) as server:
            server.starttls()
            server.login(cfg['EMAIL_USER'], cfg['EMAIL_PASSWORD'])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception('Failed to send "%s" to %s', subject, to_email)
        return False
    logger.info('Sent "%s" to %s', subject, to_email)
    return True


def send_booking_received(booking, event):
    html = render_template('email/booking_received.html', booking=booking, event=event)
    return send_email(booking['attendee_email'], f"Booking Received - {event['name']}", html)


def send_booking_confirmation(booking, event):
    html = render_template('email/booking_confirmed.html', booking=booking, event=event)
    return send_email(booking['attendee_email'], f"Booking Confirmed - {event['name']}", html)


def send_booking_cancellation(booking, event):
    html = render_template('email/booking_cancelled.html', booking=booking, event=event)
    return send_email(booking['attendee_email'], f"Booking Cancelled - {event['name']}", html)


def send_payment_instructions(booking, event):
    html = render_template('email/payment_instructions.html', booking=booking, event=event)
    return send_email(booking['attendee_email'],
                      f"Payment Confirmation Required - {event['name']}", html)


def send_contact_notification(message):
    html = render_template('email/contact_message.html', message=message)
    return send_email(current_app.config['EMAIL_USER'],
                      f"New Contact Message from {message['name']}", html,
                      reply_to=message['email'])


def send_announcement(to_email, title, body, event=None):
    html = render_template('email/announcement.html', title=title, body=body, event=event)
    return send_email(to_email, title, html)
