"""Narrow interfaces to the host document/UI shell.

The kernel never talks to an editor directly; a host adapter implements these and is
handed to :class:`~kusto_notebooks.kernel.context.ProcessContext`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Sequence, TypeVar

T = TypeVar("T")

KUSTO_NOTEBOOK = "kusto-notebook"
KUSTO_NOTEBOOK_KQL = "kusto-notebook-kql"
INTERACTIVE_WINDOW = "kusto-interactive"

SelectionHandler = Callable[[Any, bool], Awaitable[None]]
ExecuteHandler = Callable[[Sequence[Any]], Awaitable[None]]


class HostController(Protocol):
    """What the host hands back when a kernel is registered with it."""

    description: str

    def on_selection_changed(self, handler: SelectionHandler) -> Callable[[], None]:
        ...

    def dispose(self) -> None:
        ...


class KernelHost(Protocol):
    def create_controller(
        self, controller_id: str, document_type: str, label: str, handler: ExecuteHandler
    ) -> HostController:
        ...


class HostUI(Protocol):
    async def get_session_token(self, scopes: List[str]) -> Optional[str]:
        """Host-integrated sign-in; may prompt the user."""
        ...

    async def prompt_access_token(self) -> Optional[str]:
        ...

    async def with_progress(self, title: str, work: Awaitable[T]) -> T:
        ...


@dataclass(frozen=True)
class AppInsightsSecrets:
    app_id: str
    app_key: str


class SecretProvider(Protocol):
    async def get_app_insights_secrets(self, connection_id: str) -> Optional[AppInsightsSecrets]:
        ...
