#=============================================================================
# File        : tests/test_cli.py
# Project     : SlabHunter v1.0
# Component   : CLI Test Suite
# Description : Running entry points under the slabhunter command
# Author      : Kyle Clouthier
# Version     : 1.0.0
# Created     : 2026-10-19
#=============================================================================

import json
import sys
import textwrap

import pytest

from slabhunter import __version__
from slabhunter.buffers import default_pool
from slabhunter.cli import build_config, create_parser, main
from slabhunter.core import get_hunter

SCRIPT = textwrap.dedent("""
    import sys
    from slabhunter.buffers import alloc_unsafe

    kept = [alloc_unsafe(100) for _ in range(3)]
    print("script ran", sys.argv[1:])
""")


@pytest.fixture
def entrypoint(tmp_path):
    path = tmp_path / "app.py"
    path.write_text(SCRIPT)
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SLABHUNTER_MS_LEAK_CUTOFF", "SLABHUNTER_BIG_BUFFER_CUTOFF",
                 "SLABHUNTER_LOG_INTERVAL_S", "SLABHUNTER_KILL_SWITCH"):
        monkeypatch.delenv(name, raising=False)


class TestArguments:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_missing_entrypoint(self, capsys):
        assert main(["run"]) == 1
        assert "Usage: slabhunter run <entrypoint>" in capsys.readouterr().err

    def test_nonexistent_entrypoint(self, tmp_path, capsys):
        assert main(["run", str(tmp_path / "nope.py")]) == 1
        assert "Entry point not found" in capsys.readouterr().err

    def test_invalid_configuration(self, entrypoint, capsys):
        assert main(["run", "--leak-cutoff-ms", "-5", str(entrypoint)]) == 1
        assert "Invalid configuration" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_flags_override_env(self, monkeypatch):
        monkeypatch.setenv("SLABHUNTER_MS_LEAK_CUTOFF", "10")
        monkeypatch.setenv("SLABHUNTER_BIG_BUFFER_CUTOFF", "64")
        args = create_parser().parse_args(["run", "--leak-cutoff-ms", "250", "app.py"])
        config = build_config(args)
        assert config.ms_leak_cutoff == 250
        assert config.big_buffer_cutoff == 64


class TestRun:

    def test_runs_entrypoint_and_reports(self, entrypoint, capsys):
        saved_argv = list(sys.argv)
        assert main(["run", "--interval", "60", str(entrypoint), "alpha", "beta"]) == 0

        out = capsys.readouterr().out
        assert f"Setting up slab hunter for entrypoint {entrypoint}" in out
        assert "Printing leak info every 60 seconds" in out
        assert "script ran ['alpha', 'beta']" in out
        assert "Slab retainers potential leaks:" in out
        assert "Process RSS:" in out
        assert sys.argv == saved_argv

    def test_json_report(self, entrypoint, capsys):
        assert main(["run", "--json", str(entrypoint)]) == 0

        out = capsys.readouterr().out
        report = json.loads(out[out.index("{"):])
        assert "slab_leaks" in report
        assert "big_buffer_leaks" in report

    def test_default_pool_restored(self, entrypoint, capsys):
        assert main(["run", str(entrypoint)]) == 0
        assert 'alloc_unsafe' not in vars(default_pool)
        assert get_hunter() is None

    def test_failing_entrypoint_still_cleans_up(self, tmp_path, capsys):
        path = tmp_path / "crash.py"
        path.write_text("raise RuntimeError('entry point failed')\n")

        with pytest.raises(RuntimeError):
            main(["run", str(path)])
        assert 'alloc_unsafe' not in vars(default_pool)
        assert get_hunter() is None
        assert "Big buffer potential leaks:" in capsys.readouterr().out
