"""
Dialog State Manager

Path-addressable view over the memory scopes visible from a dialog context.

Usage:
    state = dc.state
    state.set_value("dialog.destination", "Paris")
    city = state.get_value("turn.recognized.entities.city[0]")
"""

import re
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple, Union

import structlog

from adaptive_core.config import get_settings
from adaptive_core.exceptions import DialogStateError
from adaptive_core.memory.paths import DialogPath

if TYPE_CHECKING:
    from adaptive_core.dialogs.context import DialogContext


logger = structlog.get_logger(__name__)


TURN_SCOPE_KEY = "turn"

SCOPES = ("turn", "dialog", "this", "conversation", "user", "settings")

_SEGMENT = re.compile(r"[^.\[\]]+|\[-?\d+\]")

_MISSING = object()


def parse_path(path: str) -> List[Union[str, int]]:
    """Split a dotted memory path into name and list-index segments."""
    segments: List[Union[str, int]] = []
    for token in _SEGMENT.findall(path or ""):
        if token.startswith("["):
            segments.append(int(token[1:-1]))
        else:
            segments.append(token)
    return segments


def _get_child(container: Any, segment: Union[str, int]) -> Any:
    if container is None:
        return _MISSING
    if isinstance(container, dict):
        return container.get(segment, _MISSING)
    if isinstance(container, (list, tuple)):
        if isinstance(segment, int) and -len(container) <= segment < len(container):
            return container[segment]
        return _MISSING
    if isinstance(segment, str) and not segment.startswith("_"):
        return getattr(container, segment, _MISSING)
    return _MISSING


def _set_child(container: Any, segment: Union[str, int], value: Any) -> None:
    if isinstance(container, dict):
        container[segment] = value
    elif isinstance(container, list) and isinstance(segment, int):
        if segment == len(container):
            container.append(value)
        else:
            container[segment] = value
    elif isinstance(segment, str) and hasattr(container, segment):
        setattr(container, segment, value)
    else:
        raise DialogStateError(
            f"Cannot set '{segment}' on {type(container).__name__}",
            {"segment": segment},
        )


def _remove_child(container: Any, segment: Union[str, int]) -> bool:
    if isinstance(container, dict) and segment in container:
        del container[segment]
        return True
    if isinstance(container, list) and isinstance(segment, int):
        if -len(container) <= segment < len(container):
            del container[segment]
            return True
    if isinstance(segment, str) and hasattr(container, segment) and not isinstance(container, dict):
        setattr(container, segment, None)
        return True
    return False


class DialogStateManager:
    """
    Memory view bound to a dialog context.

    Scopes:
        turn          - per-turn memory kept in the turn context
        dialog        - state of the nearest enclosing container dialog
        this          - state of the active dialog instance
        conversation  - host-provided conversation memory
        user          - host-provided user memory
        settings      - read-only snapshot of the engine settings
    """

    def __init__(self, dc: "DialogContext"):
        self._dc = dc

    # -------------------------------------------------------------------------
    # Scopes
    # -------------------------------------------------------------------------

    def _scope(self, name: Any) -> Optional[Dict[str, Any]]:
        context = self._dc.context
        if name == "turn":
            return context.turn_state.setdefault(TURN_SCOPE_KEY, {})
        if name == "dialog":
            return self._dialog_scope(self._dc)
        if name == "this":
            instance = self._dc.active_dialog
            return instance.state if instance is not None else None
        if name == "conversation":
            return context.conversation_state
        if name == "user":
            return context.user_state
        if name == "settings":
            return get_settings().model_dump()
        return None

    @staticmethod
    def _dialog_scope(dc: "DialogContext") -> Optional[Dict[str, Any]]:
        current = dc
        while current is not None:
            instance = current.active_dialog
            if instance is not None:
                dialog = current.find_dialog(instance.id)
                if dialog is not None and dialog.is_container:
                    return instance.state
            current = current.parent

        instance = dc.active_dialog
        return instance.state if instance is not None else None

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    def try_get_value(self, path: str) -> Tuple[bool, Any]:
        """Return (found, value) for a path."""
        segments = parse_path(path)
        if not segments:
            return False, None

        current: Any = self._scope(segments[0])
        if current is None:
            return False, None

        for segment in segments[1:]:
            current = _get_child(current, segment)
            if current is _MISSING:
                return False, None

        return True, current

    def get_value(self, path: str, default: Any = None) -> Any:
        """Get the value at a path, or default when absent."""
        found, value = self.try_get_value(path)
        if not found or value is None:
            return default
        return value

    def get_bool_value(self, path: str) -> bool:
        return self.get_value(path) is True

    def contains_key(self, path: str) -> bool:
        found, _ = self.try_get_value(path)
        return found

    def set_value(self, path: str, value: Any) -> None:
        """Set a value, creating intermediate dictionaries as needed."""
        segments = parse_path(path)
        if len(segments) < 2:
            raise DialogStateError(f"Cannot replace a memory scope: {path}", {"path": path})

        scope = segments[0]
        if scope == "settings":
            raise DialogStateError("The settings scope is read-only", {"path": path})

        current = self._scope(scope)
        if current is None:
            raise DialogStateError(f"Memory scope '{scope}' is not available", {"path": path})

        for segment in segments[1:-1]:
            child = _get_child(current, segment)
            if child is _MISSING or child is None:
                child = {}
                _set_child(current, segment, child)
            current = child

        _set_child(current, segments[-1], value)
        self._record_change(path)

    def remove_value(self, path: str) -> bool:
        """Remove the value at a path. Returns True if something was removed."""
        segments = parse_path(path)
        if len(segments) < 2 or segments[0] == "settings":
            return False

        current: Any = self._scope(segments[0])
        for segment in segments[1:-1]:
            current = _get_child(current, segment)
            if current is _MISSING or current is None:
                return False

        removed = _remove_child(current, segments[-1])
        if removed:
            self._record_change(path)
        return removed

    # -------------------------------------------------------------------------
    # Path Tracking
    # -------------------------------------------------------------------------

    def _tracked_paths(self, create: bool = False) -> Optional[Dict[str, int]]:
        dialog_memory = self._scope("dialog")
        if dialog_memory is None:
            return None
        tracker = dialog_memory.get("_tracker")
        if not isinstance(tracker, dict):
            if not create:
                return None
            tracker = dialog_memory["_tracker"] = {}
        paths = tracker.get("paths")
        if not isinstance(paths, dict):
            if not create:
                return None
            paths = tracker["paths"] = {}
        return paths

    def track(self, paths: Iterable[str]) -> List[str]:
        """
        Register memory paths whose changes should be recorded.

        Returns the normalized paths that were registered.
        """
        tracked = self._tracked_paths(create=True)
        if tracked is None:
            raise DialogStateError("Path tracking requires an active dialog")

        registered = []
        for path in paths:
            normalized = ".".join(str(s) for s in parse_path(path))
            if not normalized:
                continue
            tracked.setdefault(normalized, 0)
            registered.append(normalized)
        return registered

    def tracked_version(self, path: str) -> int:
        """Event counter recorded at the last change of a tracked path."""
        tracked = self._tracked_paths()
        if not tracked:
            return 0
        return tracked.get(path, 0)

    def _record_change(self, path: str) -> None:
        if path.startswith(DialogPath.TRACKER) or path == DialogPath.EVENT_COUNTER:
            return

        tracked = self._tracked_paths()
        if not tracked:
            return

        normalized = ".".join(str(s) for s in parse_path(path))
        counter = self.get_value(DialogPath.EVENT_COUNTER, 0)
        for key in tracked:
            if key == normalized or key.startswith(normalized + ".") or normalized.startswith(key + "."):
                tracked[key] = counter
                logger.debug("tracked_path_changed", path=key, counter=counter)


__all__ = [
    "DialogStateManager",
    "SCOPES",
    "TURN_SCOPE_KEY",
    "parse_path",
]
