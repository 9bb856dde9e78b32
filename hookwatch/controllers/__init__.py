from hookwatch.controllers.events import EventsController
from hookwatch.controllers.notifications import NotificationsController
from hookwatch.controllers.push import PushController
from hookwatch.controllers.version import VersionController

__all__ = ["EventsController", "NotificationsController", "PushController", "VersionController"]
