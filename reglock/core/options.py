"""
Lock configuration record.

Every value the registration lock keeps for itself lives in a single entry of
the host option store, keyed by the option name, holding a mapping of sub-keys.
"""

from typing import Any, Dict, Optional

from .host import IConfigStore


class LockOptions:
    """Managed mapping stored under one option-store key."""

    def __init__(self, store: IConfigStore, option_name: str, default_options: Dict[str, Any] = None):
        self.store = store
        self.option_name = option_name
        self.default_options = dict(default_options or {})

    def get_options(self, defaults: bool = False) -> Optional[Dict[str, Any]]:
        """
        Return the managed mapping.

        Args:
            defaults: Merge stored options over the default options.

        Returns:
            The stored mapping (merged with defaults if requested), or None if
            nothing is stored and defaults were not requested.
        """
        options = self.store.get(self.option_name)

        if not defaults:
            return options if isinstance(options, dict) else None

        if not isinstance(options, dict):
            return dict(self.default_options)

        merged = dict(self.default_options)
        merged.update(options)
        return merged

    def exists(self) -> bool:
        return self.get_options() is not None

    def get_option(self, name: str) -> Optional[Any]:
        options = self.get_options()
        if options is None:
            return None
        return options.get(name)

    def update_option(self, name: str, value: Any) -> bool:
        """Set a sub-key. True only when the value changed and was written."""
        options = self.get_options() or {}

        if name in options and options[name] == value:
            return False

        options[name] = value
        return self.store.set(self.option_name, options)

    def add_option(self, name: str, value: Any) -> bool:
        """Set a sub-key only if it is not already present."""
        options = self.get_options() or {}

        if name in options:
            return False

        options[name] = value
        return self.store.set(self.option_name, options)

    def delete_option(self, name: str) -> bool:
        options = self.get_options()

        if options is not None and name in options:
            del options[name]
            return self.store.set(self.option_name, options)

        return False

    def create(self, initial: Dict[str, Any] = None) -> bool:
        """Atomically create the entry; False if it already existed."""
        values = dict(self.default_options)
        values.update(initial or {})
        return self.store.add(self.option_name, values)

    def delete_options(self) -> bool:
        return self.store.delete(self.option_name)
