"""Insertion-ordered map that evicts its oldest entries past a capacity."""

from collections import OrderedDict
from typing import Any


class BoundedOrderedDict(OrderedDict):
    """OrderedDict capped at *capacity* entries, oldest evicted first.

    Re-setting an existing key refreshes its position.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        super().__init__()
        self.capacity = capacity

    def __setitem__(self, key: Any, value: Any) -> None:
        if key in self:
            self.move_to_end(key)
        super().__setitem__(key, value)
        while len(self) > self.capacity:
            self.popitem(last=False)
