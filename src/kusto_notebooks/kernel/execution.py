from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from kusto_notebooks.connections.base import BaseConnection
from kusto_notebooks.kernel.errors import ClassifiedError, classify_query_error
from kusto_notebooks.kusto.response import TabularResponse, get_row_count_status, normalize_response
from kusto_notebooks.logging.logger import get_logger
from kusto_notebooks.viz.inference import VisualizationResult, infer_visualization

log = get_logger("kernel.execution")

MIME_VISUAL = "application/vnd.kusto.result.viz+json"
MIME_TABULAR = "application/vnd.kusto.result+json"
MIME_ERROR = "application/vnd.code.notebook.error"

VISUAL = "visual"
TABULAR = "tabular"
ERROR = "error"


@dataclass(frozen=True)
class OutputArtifact:
    kind: str
    mime: str
    payload: Dict[str, Any]

    @staticmethod
    def visual(response: TabularResponse, viz: VisualizationResult) -> "OutputArtifact":
        payload = response.to_dict()
        payload["visualization"] = viz.to_dict()
        return OutputArtifact(kind=VISUAL, mime=MIME_VISUAL, payload=payload)

    @staticmethod
    def tabular(response: TabularResponse) -> "OutputArtifact":
        return OutputArtifact(kind=TABULAR, mime=MIME_TABULAR, payload=response.to_dict())

    @staticmethod
    def error(err: ClassifiedError) -> "OutputArtifact":
        return OutputArtifact(kind=ERROR, mime=MIME_ERROR, payload=err.to_dict())


@dataclass(frozen=True)
class Document:
    uri: str
    document_type: str


@dataclass
class Cell:
    document: Document
    index: int
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    outputs: List[OutputArtifact] = field(default_factory=list)


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    CANCELLED = "cancelled"
    ERROR = "error"


class ExecutionTask:
    """One run of one cell. Ends exactly once and is never reused."""

    def __init__(self, cell: Cell, token: Optional[CancellationToken] = None):
        self.cell = cell
        self.token = token or CancellationToken()
        self.state = TaskState.PENDING
        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.state == TaskState.SUCCESS

    @property
    def done(self) -> bool:
        return self.ended_at is not None

    def start(self, ts: Optional[float] = None) -> None:
        self.started_at = ts if ts is not None else time.time()
        self.state = TaskState.RUNNING

    def clear_output(self) -> None:
        self.cell.outputs = []

    def append_output(self, artifact: OutputArtifact) -> None:
        self.cell.outputs = [*self.cell.outputs, artifact]

    def end(self, state: TaskState, ts: Optional[float] = None) -> None:
        if self.done:
            raise RuntimeError(f"Execution task for cell {self.cell.index} already ended ({self.state.value})")
        self.state = state
        self.ended_at = ts if ts is not None else time.time()


def _drop(fut: "asyncio.Future[Any]") -> None:
    """Cancel a race loser; if it already finished, consume its outcome."""
    if not fut.done():
        fut.cancel()
    elif not fut.cancelled():
        fut.exception()


async def _race_query(task: ExecutionTask, client: Any, database: str, query: str) -> Optional[TabularResponse]:
    """``None`` when the cancellation token fires before the query settles."""
    query_fut = asyncio.ensure_future(client.execute(database, query))
    cancel_fut = asyncio.ensure_future(task.token.wait())
    try:
        await asyncio.wait({query_fut, cancel_fut}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if task.token.is_cancellation_requested or not query_fut.done():
            _drop(query_fut)
        _drop(cancel_fut)
    if task.token.is_cancellation_requested:
        return None
    return query_fut.result()


async def execute_cell(cell: Cell, connection: BaseConnection, task: Optional[ExecutionTask] = None) -> None:
    """Run one cell against ``connection`` and append its single output artifact.

    Query failures become an error artifact on the cell and never propagate. A
    connection that cannot produce a client ends the task with no output at all.
    """
    task = task or ExecutionTask(cell)
    task.start()
    task.clear_output()
    cell.metadata = {**cell.metadata, "statusMessage": ""}
    state = TaskState.ERROR
    try:
        try:
            client = await connection.get_kusto_client()
        except Exception:
            log.exception("Could not create a client", extra={"connection_id": connection.info.id})
            return

        try:
            results = await _race_query(task, client, connection.database, cell.text)
            if results is None:
                state = TaskState.CANCELLED
                log.info("Cell execution cancelled", extra={"cell": cell.index, "document": cell.document.uri})
                return

            response = normalize_response(results)
            viz = infer_visualization(response)
            if viz.is_chart:
                task.append_output(OutputArtifact.visual(response, viz))
            else:
                task.append_output(OutputArtifact.tabular(response))
            status = get_row_count_status(response)
            if status:
                cell.metadata = {**cell.metadata, "statusMessage": status}
            state = TaskState.SUCCESS
        except Exception as ex:
            log.exception("Failed to execute query", extra={"cell": cell.index, "document": cell.document.uri})
            task.append_output(OutputArtifact.error(classify_query_error(ex)))
    except asyncio.CancelledError:
        state = TaskState.CANCELLED
        raise
    finally:
        task.end(state)
