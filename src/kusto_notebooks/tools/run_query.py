from __future__ import annotations

import json
from typing import Any, Dict

from kusto_notebooks.exceptions.errors import ConnectionSetupError
from kusto_notebooks.kernel.controller import ControllerManager
from kusto_notebooks.kernel.execution import Document
from kusto_notebooks.kusto.response import TabularResponse, normalize_response
from kusto_notebooks.logging.logger import get_logger

log = get_logger("tools.run_query")


def response_to_json(response: TabularResponse) -> Dict[str, Any]:
    return {
        "primaryResults": [t.to_records() for t in response.primary_results],
        "exceptions": list(response.exceptions),
    }


def _inner_message(ex: Exception) -> Any:
    inner = getattr(ex, "innererror", None)
    if isinstance(inner, dict):
        return inner.get("message")
    return getattr(inner, "message", None)


async def run_query_tool(query: str, document: Document, manager: ControllerManager) -> str:
    """Run ``query`` against the connection bound to ``document`` and return JSON text.

    Meant for callers that want data back (e.g. an assistant tool) rather than a cell
    output. Engine errors with an inner message come back as ``"Error: ..."``.
    """
    controller = manager.controller_for_document(document)
    if controller is None:
        raise ConnectionSetupError(f"No connection is bound to {document.uri}")
    connection = manager.context.get_connection(controller.connection)
    client = await connection.get_kusto_client()
    try:
        response = normalize_response(await client.execute(connection.database, query))
    except Exception as ex:
        inner = _inner_message(ex)
        if inner:
            return f"Error: {inner}"
        log.exception("Query tool failed", extra={"document": document.uri})
        raise
    return json.dumps(response_to_json(response), indent=2, default=str)
