"""Tests for the command line entry point."""

from unittest.mock import AsyncMock, Mock

import pytest

from xlm_settlement import __main__ as cli
from xlm_settlement.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("ENGINE_PORT", raising=False)
    monkeypatch.delenv("ENGINE_HOST", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_fund_testnet_account_prints_secret(monkeypatch: pytest.MonkeyPatch, capsys):
    fund = AsyncMock(return_value="SNEWSECRET")
    monkeypatch.setattr(cli, "generate_testnet_account", fund)

    assert cli.main(["fund-testnet-account"]) == 0

    assert capsys.readouterr().out.strip() == "SNEWSECRET"
    fund.assert_awaited_once()


def test_serve_runs_app_factory(monkeypatch: pytest.MonkeyPatch):
    run = Mock()
    monkeypatch.setattr(cli.uvicorn, "run", run)

    assert cli.main(["serve", "--port", "3005"]) == 0

    run.assert_called_once_with(
        "xlm_settlement.api.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=3005,
    )


def test_serve_defaults_to_environment(monkeypatch: pytest.MonkeyPatch):
    run = Mock()
    monkeypatch.setattr(cli.uvicorn, "run", run)
    monkeypatch.setenv("ENGINE_PORT", "3100")

    cli.main([])

    assert run.call_args.kwargs["port"] == 3100
