"""
Outbound integrations used by the identity core.
"""

from homi.services.email_service import NotificationSender, SmtpNotificationSender

__all__ = [
    "NotificationSender",
    "SmtpNotificationSender",
]
