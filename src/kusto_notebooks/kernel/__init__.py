"""Kernel side of the notebook integration.

A kernel (controller) binds one connection to one document type. Running a cell goes
through :func:`kusto_notebooks.kernel.execution.execute_cell`, which races the query
against the cell's cancellation token, normalizes the response, infers a chart and
appends exactly one output artifact (visual, tabular or error) to the cell.
"""
