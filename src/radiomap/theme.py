"""Light/dark theme preference."""

from __future__ import annotations

import logging

from radiomap.exceptions import PersistenceError
from radiomap.models import Theme
from radiomap.storage import THEME_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class ThemeStore:
    """Saved theme, falling back to the system preference."""

    def __init__(
        self,
        storage: KeyValueStore,
        system_theme: Theme = Theme.LIGHT,
        key: str = THEME_KEY,
    ):
        self.storage = storage
        self.system_theme = system_theme
        self.key = key
        self._current = self.saved() or system_theme

    @property
    def current(self) -> Theme:
        return self._current

    @property
    def is_dark(self) -> bool:
        return self._current == Theme.DARK

    def saved(self) -> Theme | None:
        value = self.storage.get(self.key)
        if value is None:
            return None
        try:
            return Theme(value.strip())
        except ValueError:
            return None

    def set(self, theme: Theme) -> None:
        self._current = Theme(theme)
        try:
            self.storage.set(self.key, self._current.value)
        except PersistenceError as e:
            logger.error("Could not save theme: %s", e)

    def toggle(self) -> Theme:
        self.set(Theme.LIGHT if self.is_dark else Theme.DARK)
        return self._current

    def reset_to_system(self) -> None:
        self.set(self.system_theme)

    def clear_saved(self) -> None:
        try:
            self.storage.remove(self.key)
        except PersistenceError as e:
            logger.error("Could not clear theme: %s", e)

    def system_changed(self, theme: Theme) -> None:
        """Follow the system preference unless the user saved one."""
        self.system_theme = theme
        if self.saved() is None:
            self._current = theme
