"""
Calculation history shared between calculator windows.
"""

import logging

logger = logging.getLogger("calculator.history")


class History:
    """Newest-first list of formatted calculation lines"""

    def __init__(self):
        self._entries = []
        self._listeners = []

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    def __getitem__(self, index):
        return self._entries[index]

    @property
    def entries(self):
        return list(self._entries)

    def add(self, line):
        """Insert a line at the top"""
        self._entries.insert(0, line)
        logger.debug("History entry added: %s", line)
        self._notify()

    def clear(self):
        """Clear all history"""
        if not self._entries:
            return
        self._entries.clear()
        logger.info("History cleared")
        self._notify()

    def as_text(self):
        return "\n".join(self._entries)

    def subscribe(self, callback):
        """Call `callback(history)` after every change"""
        self._listeners.append(callback)

    def unsubscribe(self, callback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self):
        for callback in list(self._listeners):
            callback(self)
