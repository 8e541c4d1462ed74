class KustoNotebookError(Exception):
    """Base exception for kusto_notebooks."""

class MalformedConnectionToken(KustoNotebookError):
    pass

class UnknownConnectionType(KustoNotebookError):
    pass

class SchemaFetchError(KustoNotebookError):
    pass

class ConnectionSetupError(KustoNotebookError):
    """The capability could not produce an executable client (auth, secrets, cluster)."""


class QueryError(KustoNotebookError):
    """A failed query, as shown to the user in the cell output."""

    display_name = "Query Error"

    def __init__(self, message: str = "Failed to execute query"):
        super().__init__(message)
        self.message = message

class InvalidQuery(QueryError):
    display_name = "Invalid Query"

class AuthenticationError(QueryError):
    display_name = "Authentication Error"

class QueryTimeout(QueryError):
    display_name = "Query Timeout"

class ServerError(QueryError):
    display_name = "Server Error"

class GenericQueryError(QueryError):
    pass

class PlotlyRenderError(KustoNotebookError):
    pass
