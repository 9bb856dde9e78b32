from hookwatch.lib.hooks import action, filter, hooks

__all__ = ["hooks", "action", "filter"]
