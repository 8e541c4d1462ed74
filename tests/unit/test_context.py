"""Unit tests for process startup wiring."""

import logging

from kusto_notebooks.connections.azauth import CliTokenProvider
from kusto_notebooks.kernel.context import bootstrap
from kusto_notebooks.logging import logger as logger_mod

from fakes import make_settings


def test_bootstrap_configures_logging_and_capabilities(tmp_path, monkeypatch):
    monkeypatch.setattr(logger_mod, "_INITIALIZED", False)
    root = logging.getLogger("kusto")
    before = list(root.handlers)
    log_file = tmp_path / "logs" / "kusto.log"
    settings = make_settings(log_level="WARNING", log_file=str(log_file))
    try:
        context = bootstrap(settings)

        added = [h for h in root.handlers if h not in before]
        assert len(added) == 2
        assert root.level == logging.WARNING
        assert sorted(context.capabilities.tags()) == ["appInsights", "azAuth"]
        assert isinstance(context.cli_credential, CliTokenProvider)
        context.close()
    finally:
        root.setLevel(logging.NOTSET)
        for h in [h for h in root.handlers if h not in before]:
            root.removeHandler(h)
            h.close()
