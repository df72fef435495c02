"""AppContext - cross-page state shared between the contact form and the wizard.

The hosting shell owns one context and passes it to the engine explicitly.
The engine never depends on it for its own stage logic; it only publishes
the submitted values and lets the host check whether the wizard may be
entered.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

SET_CONTACT_INFO = 'SET_CONTACT_INFO'
SET_QUOTE_FORM = 'SET_QUOTE_FORM'

_STATE_KEYS = {
    SET_CONTACT_INFO: 'contact_info',
    SET_QUOTE_FORM: 'quote_form',
}


class AppContext:
    """Key/value store with a dispatch interface."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._state: Dict[str, Any] = {'contact_info': None, 'quote_form': None}
        if initial:
            self._state.update(initial)
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []

    @property
    def state(self) -> Dict[str, Any]:
        """Snapshot of the current state; edits to it have no effect."""
        return copy.deepcopy(self._state)

    def dispatch(self, action: Dict[str, Any]) -> Dict[str, Any]:
        """Apply an action and notify listeners.

        Args:
            action: ``{'type': 'SET_CONTACT_INFO' | 'SET_QUOTE_FORM', 'payload': ...}``

        Returns:
            The new state snapshot
        """
        key = _STATE_KEYS.get(action.get('type'))
        if key is None:
            # Unknown actions leave state unchanged
            logger.debug(f"Ignoring unknown action: {action.get('type')}")
            return self.state

        self._state = dict(self._state)
        self._state[key] = copy.deepcopy(action.get('payload'))

        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def subscribe(self, listener: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
