"""Consumer side of hookwatch: polls the relay and reconciles push and poll deliveries."""

from hookwatch.client.api import APIClient, APIError
from hookwatch.client.sync import SyncEngine
from hookwatch.client.tracker import DedupTracker

__all__ = ["APIClient", "APIError", "DedupTracker", "SyncEngine"]
