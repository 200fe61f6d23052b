from __future__ import annotations

import importlib
from types import SimpleNamespace

import pytest


@pytest.fixture
def captured_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    calls: list[dict] = []

    def fake_main(*, args: list[str], prog_name: str) -> None:  # click.Command.main signature
        calls.append({"args": args, "prog": prog_name})

    fake_get_command = lambda app: SimpleNamespace(main=fake_main)  # noqa: E731

    mod = importlib.import_module("propdx.cli.main")
    monkeypatch.setattr(mod, "get_command", fake_get_command)
    return calls


def test_main_defaults_to_full(captured_calls: list[dict]) -> None:
    mod = importlib.import_module("propdx.cli.main")

    mod.main([])

    assert captured_calls == [{"args": ["full"], "prog": "propdx"}]


def test_main_passes_help_through(captured_calls: list[dict]) -> None:
    mod = importlib.import_module("propdx.cli.main")

    mod.main(["--help"])

    assert captured_calls[0]["args"] == ["--help"]


def test_main_treats_leading_flags_as_full_args(captured_calls: list[dict]) -> None:
    mod = importlib.import_module("propdx.cli.main")

    mod.main(["--json", "--time-budget", "30"])

    assert captured_calls[0]["args"] == ["full", "--json", "--time-budget", "30"]


def test_main_passes_through_subcommand(captured_calls: list[dict]) -> None:
    mod = importlib.import_module("propdx.cli.main")

    mod.main(["fix", "performance"])

    assert captured_calls[0]["args"] == ["fix", "performance"]


def test_main_reads_process_arguments(
    captured_calls: list[dict], monkeypatch: pytest.MonkeyPatch
) -> None:
    mod = importlib.import_module("propdx.cli.main")
    monkeypatch.setattr(mod.sys, "argv", ["propdx", "test", "lienAnalysis"])

    mod.main()

    assert captured_calls[0]["args"] == ["test", "lienAnalysis"]
