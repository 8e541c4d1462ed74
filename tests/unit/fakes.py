"""Test doubles for the host, the query client and credentials."""
import asyncio
from typing import Any, Callable, Dict, List, Optional

from kusto_notebooks.config.settings import DEFAULT_DOCUMENT_TYPES, Settings
from kusto_notebooks.kernel.host import AppInsightsSecrets
from kusto_notebooks.kusto.response import Column, ResultTable, TabularResponse


def make_settings(**overrides) -> Settings:
    values = dict(
        env="test",
        log_level="DEBUG",
        log_file=None,
        connections_file="",
        request_timeout_seconds=5.0,
        aad_scope="https://management.core.windows.net/.default",
        app_insights_endpoint="https://api.applicationinsights.io",
        document_types=list(DEFAULT_DOCUMENT_TYPES),
    )
    values.update(overrides)
    return Settings(**values)


def table(name: str, columns: List[tuple], rows: List[list]) -> ResultTable:
    return ResultTable(
        name=name,
        columns=[Column(name=n, type=t, ordinal=i) for i, (n, t) in enumerate(columns)],
        rows=rows,
    )


def viz_props(json_text: str) -> ResultTable:
    return table(
        "@ExtendedProperties",
        [("TableId", "int"), ("Key", "string"), ("Value", "dynamic")],
        [[1, "Visualization", json_text]],
    )


class FakeClient:
    """Query client whose results are scripted per query text."""

    def __init__(self, results: Optional[Dict[str, Any]] = None, delay: float = 0.0):
        self.results = results or {}
        self.delay = delay
        self.calls: List[tuple] = []
        self.started = asyncio.Event()

    async def execute(self, database: str, query: str) -> TabularResponse:
        self.calls.append((database, query))
        self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results.get(query)
        if isinstance(result, BaseException):
            raise result
        if result is None:
            return TabularResponse(tables=[table("PrimaryResult", [("x", "long")], [[1]])], table_names=["PrimaryResult"])
        return result


class FakeHostController:
    def __init__(self, controller_id: str, document_type: str, label: str, handler: Callable):
        self.id = controller_id
        self.document_type = document_type
        self.label = label
        self.handler = handler
        self.description = ""
        self.selection_handlers: List[Callable] = []
        self.disposed = False

    def on_selection_changed(self, handler):
        self.selection_handlers.append(handler)

        def _off():
            self.selection_handlers.remove(handler)

        return _off

    async def select(self, document, selected: bool = True):
        for h in list(self.selection_handlers):
            await h(document, selected)

    def dispose(self):
        self.disposed = True


class FakeHost:
    def __init__(self):
        self.created: List[FakeHostController] = []

    def create_controller(self, controller_id, document_type, label, handler):
        c = FakeHostController(controller_id, document_type, label, handler)
        self.created.append(c)
        return c


class FakeUI:
    def __init__(self, session_token: Any = None, prompt_token: Any = None):
        self.session_token = session_token
        self.prompt_token = prompt_token
        self.session_calls: List[List[str]] = []
        self.prompt_calls = 0
        self.progress_titles: List[str] = []

    async def get_session_token(self, scopes):
        self.session_calls.append(list(scopes))
        if isinstance(self.session_token, BaseException):
            raise self.session_token
        return self.session_token

    async def prompt_access_token(self):
        self.prompt_calls += 1
        if isinstance(self.prompt_token, BaseException):
            raise self.prompt_token
        return self.prompt_token

    async def with_progress(self, title, work):
        self.progress_titles.append(title)
        return await work


class FakeCredential:
    def __init__(self, token: Any = None):
        self.token = token
        self.calls = 0

    async def get_token(self, scope):
        self.calls += 1
        if isinstance(self.token, BaseException):
            raise self.token
        return self.token


class FakeSecrets:
    def __init__(self, secrets: Optional[Dict[str, AppInsightsSecrets]] = None):
        self.secrets = secrets or {}

    async def get_app_insights_secrets(self, connection_id):
        return self.secrets.get(connection_id)


