# models/notifications.py
from datetime import datetime
from ..addons.extensions import db


class Notification(db.Model):
    """Persisted notification log keyed by recipient; lifecycle created -> read."""
    __tablename__ = 'notifications'

    type_enum = db.Enum('info', 'warning', 'error', 'success', name='notification_type')

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=True, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(type_enum, nullable=False, default='info')
    link = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    read_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_read(self):
        return self.read_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'recipient_id': self.recipient_id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'link': self.link,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'read_at': self.read_at.isoformat() if self.read_at else None,
        }
