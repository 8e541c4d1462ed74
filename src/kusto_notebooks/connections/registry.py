from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional

from kusto_notebooks.connections.base import BaseConnection
from kusto_notebooks.connections.types import ConnectionInfo
from kusto_notebooks.exceptions.errors import UnknownConnectionType
from kusto_notebooks.logging.logger import get_logger

if TYPE_CHECKING:
    from kusto_notebooks.kernel.context import ProcessContext

log = get_logger("connections.registry")

ConnectionCtor = Callable[[Any, "ProcessContext"], BaseConnection]
Recognizer = Callable[[Mapping[str, Any]], Optional[ConnectionInfo]]


@dataclass(frozen=True)
class Capability:
    tag: str
    ctor: ConnectionCtor
    recognizer: Recognizer


class CapabilityRegistry:
    """Connection-type tag -> (constructor, recognizer), built once at startup."""

    def __init__(self) -> None:
        self._capabilities: Dict[str, Capability] = {}

    def register(self, tag: str, ctor: ConnectionCtor, recognizer: Recognizer) -> None:
        if tag in self._capabilities:
            log.warning("Connection capability registered twice; replacing", extra={"tag": tag})
        self._capabilities = {**self._capabilities, tag: Capability(tag=tag, ctor=ctor, recognizer=recognizer)}

    def tags(self) -> List[str]:
        return list(self._capabilities.keys())

    def resolve(self, info: ConnectionInfo, context: "ProcessContext") -> BaseConnection:
        cap = self._capabilities.get(info.type)
        if cap is None:
            raise UnknownConnectionType(f"No connection capability registered for '{info.type}'")
        return cap.ctor(info, context)

    def recognize(self, raw: Mapping[str, Any]) -> ConnectionInfo:
        """Turn loose connection fields into a ConnectionInfo; exactly one capability must claim them."""
        claimed = []
        for cap in self._capabilities.values():
            info = cap.recognizer(raw)
            if info is not None:
                claimed.append((cap.tag, info))
        if len(claimed) != 1:
            tags = [t for t, _ in claimed]
            raise UnknownConnectionType(f"Expected exactly one connection type to match, got {tags or 'none'}")
        return claimed[0][1]
