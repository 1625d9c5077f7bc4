# tests/unit/test_cli.py — v1
"""Tests for main.py — argument parsing and command handlers."""

from __future__ import annotations

import argparse
import asyncio

import pytest

from iscadmin.core.models import Job, JobStatus
from iscadmin.main import _build_parser, _cmd_list, _cmd_resolve, _exit_code, main


class TestParser:
    def test_reset_scope_is_exclusive(self):
        parser = _build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["reset", "HR", "--accounts", "--entitlements"])

    def test_aggregate_flags(self):
        args = _build_parser().parse_args(["aggregate", "HR", "--disable-optimization"])
        assert args.source == "HR"
        assert args.disable_optimization is True
        assert args.entitlements is False

    def test_unknown_collection(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["list", "accounts"])


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_missing_tenant(self, monkeypatch, tmp_path, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("ISC_TENANT", raising=False)
        monkeypatch.delenv("ISC_BASE_URL", raising=False)
        assert main(["list", "sources"]) == 1
        assert "Invalid configuration" in capsys.readouterr().err


class TestExitCode:
    def test_codes(self):
        assert _exit_code(None) == 2
        assert _exit_code(Job(id="j", status=JobStatus.SUCCESS)) == 0
        assert _exit_code(Job(id="j", status=JobStatus.WARNING)) == 0
        assert _exit_code(Job(id="j", status=JobStatus.FAILURE)) == 1


class TestCommands:
    def test_list_paged_first_window(self, session, fake_client, capsys):
        fake_client.collections["roles"] = [{"id": str(i), "name": f"Role {i}"} for i in range(6)]
        args = argparse.Namespace(collection="roles", all=False, filters=None)

        assert asyncio.run(_cmd_list(args, session)) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines == ["Role 0", "Role 1", "Role 2", "Role 3", "... 2 more (use --all)"]

    def test_list_paged_all(self, session, fake_client, capsys):
        fake_client.collections["roles"] = [{"id": str(i), "name": f"Role {i}"} for i in range(6)]
        args = argparse.Namespace(collection="roles", all=True, filters="Role*")

        asyncio.run(_cmd_list(args, session))
        assert len(capsys.readouterr().out.splitlines()) == 6
        assert fake_client.page_calls[0][1] == "Role*"

    def test_list_empty(self, session, capsys):
        args = argparse.Namespace(collection="access-profiles", all=False, filters=None)
        asyncio.run(_cmd_list(args, session))
        assert capsys.readouterr().out.strip() == "No data found"

    def test_resolve(self, session, fake_client, capsys):
        fake_client.ids_by_name[("roles", "Admins")] = "role-1"
        args = argparse.Namespace(collection="roles", names=["Admins", "Ghost"])

        assert asyncio.run(_cmd_resolve(args, session)) == 1
        assert capsys.readouterr().out.splitlines() == ["Admins\trole-1", "Ghost\t<not found>"]
