from hookwatch.db.models.event import EventRecord
from hookwatch.db.models.metadata import ServerMetadata
from hookwatch.db.models.notification import PushRegistration, StoredNotification

__all__ = ["EventRecord", "PushRegistration", "ServerMetadata", "StoredNotification"]
