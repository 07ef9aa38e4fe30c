# controllers/notifications/notifications.py
from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field
from typing import Optional

from ...addons.functions import jsonifyFormat
from ...addons.notifications import list_notifications, mark_read

notifications_bp = APIBlueprint('notifications', __name__, url_prefix='/api/notifications')

notifications_tag = Tag(name="Notifications", description="Notification log")

class NotificationsQuery(BaseModel):
    recipientId: int = Field(..., description="Employee ID")
    unreadOnly: bool = Field(False, description="Only unread notifications")

class NotificationIdPath(BaseModel):
    notification_id: int = Field(..., description="Notification ID")

class MarkReadSchema(BaseModel):
    recipientId: Optional[int] = Field(None, description="Must own the notification when given")


@notifications_bp.get('/', tags=[notifications_tag], security=[{"jwt": []}])
@jwt_required()
def get_notifications(query: NotificationsQuery):
    """List an employee's notifications, newest first"""
    notifications = list_notifications(query.recipientId, unread_only=query.unreadOnly)
    return jsonifyFormat({
        'status': 200,
        'data': [n.to_dict() for n in notifications],
        'unread': sum(1 for n in notifications if not n.is_read)
    }, 200)

@notifications_bp.post('/<int:notification_id>/read', tags=[notifications_tag], security=[{"jwt": []}])
@jwt_required()
def read_notification(path: NotificationIdPath, body: MarkReadSchema):
    """Mark a notification as read"""
    notification = mark_read(path.notification_id, recipient_id=body.recipientId)
    return jsonifyFormat({
        'status': 200,
        'data': notification.to_dict(),
        'message': 'Notification marked as read'
    }, 200)
