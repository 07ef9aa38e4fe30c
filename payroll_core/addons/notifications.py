# addons/notifications.py
import logging
from datetime import datetime

from .extensions import db
from .exceptions import RecordNotFound
from ..models.notifications import Notification

logger = logging.getLogger(__name__)


def notify(recipient_id, title, message, type='info', link=None, commit=False):
    """Record a notification for an employee. Delivery channels are not handled here."""
    notification = Notification(
        recipient_id=recipient_id,
        title=title,
        message=message,
        type=type,
        link=link,
    )
    db.session.add(notification)
    if commit:
        db.session.commit()
    logger.debug(f"Notification queued for employee {recipient_id}: {title}")
    return notification


def list_notifications(recipient_id, unread_only=False):
    query = Notification.query.filter_by(recipient_id=recipient_id)
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_read(notification_id, recipient_id=None):
    notification = db.session.get(Notification, notification_id)
    if notification is None or (recipient_id is not None and notification.recipient_id != recipient_id):
        raise RecordNotFound(f"Notification {notification_id} not found")
    if notification.read_at is None:
        notification.read_at = datetime.now()
        db.session.commit()
    return notification
