"""Registry of user-configurable device variables."""

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)


class VariableRegistry:
    """Named variables with defaults, combined from every device"""

    def __init__(self, defaults: Optional[Mapping[str, Any]] = None):
        self._defaults: Dict[str, Any] = dict(defaults or {})
        self._values: Dict[str, Any] = {}

    def register(self, name: str, default: Any) -> bool:
        """Register a variable. Existing registrations are kept"""
        if name in self._defaults:
            return False
        self._defaults[name] = default
        return True

    def combine(self, other: Mapping[str, Any]) -> int:
        """Merge another set of variables; returns how many were new"""
        added = 0
        for name, default in other.items():
            if self.register(name, default):
                added += 1
            else:
                logger.debug(f"Variable {name} already registered, keeping existing")
        return added

    def get(self, name: str) -> Any:
        if name not in self._defaults:
            raise KeyError(name)
        return self._values.get(name, self._defaults[name])

    def set(self, name: str, value: Any) -> None:
        if name not in self._defaults:
            raise KeyError(name)
        self._values[name] = value

    def reset(self, name: str) -> None:
        self._values.pop(name, None)

    def names(self) -> List[str]:
        return list(self._defaults)

    def to_dict(self) -> Dict[str, Any]:
        return {name: self.get(name) for name in self._defaults}

    def __contains__(self, name: object) -> bool:
        return name in self._defaults

    def __iter__(self) -> Iterator[str]:
        return iter(self._defaults)

    def __len__(self) -> int:
        return len(self._defaults)
