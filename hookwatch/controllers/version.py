"""Version controller: change counters consumers poll to detect new data."""

from litestar import Controller, get

from hookwatch import __version__
from hookwatch.auth import api_key_guard
from hookwatch.lib.notifications import notifications


class VersionController(Controller):
    path = "/version"
    guards = [api_key_guard]

    @get("/")
    async def version(self) -> dict:
        counters = notifications.counters
        return {
            "status": "ok",
            "server_version": __version__,
            "data_version": counters.data_version,
            "notification_version": counters.notification_version,
        }
