"""Tests for the external tool runner.

These run the current Python interpreter as a stand-in for GPU tools.
"""

import sys

import pytest

from .lib import EXIT_NOT_FOUND, ProbeResult, ToolRunner


class TestProbeResult:
    """Tests for ProbeResult helpers."""

    @pytest.mark.unit
    def test_ok_requires_zero_exit(self):
        """Only a found, finished, zero-exit probe is ok."""
        assert ProbeResult(args=("x",)).ok is True
        assert ProbeResult(args=("x",), returncode=1).ok is False
        assert ProbeResult(args=("x",), found=False).ok is False
        assert ProbeResult(args=("x",), returncode=None, timed_out=True).ok is False

    @pytest.mark.unit
    def test_lines_skips_blank(self):
        """Blank lines are dropped and trailing space stripped."""
        result = ProbeResult(args=("x",), stdout="a  \n\n   \nb\n")
        assert result.lines() == ["a", "b"]

    @pytest.mark.unit
    def test_lines_pattern_is_case_insensitive(self):
        """Pattern filtering ignores case like grep -i."""
        stdout = (
            "00:02.0 VGA compatible controller: Intel Corporation UHD Graphics\n"
            "03:00.0 VGA compatible controller: Advanced Micro Devices [AMD/ATI] Navi\n"
            "00:1f.3 Audio device: Intel Corporation\n"
        )
        result = ProbeResult(args=("lspci",), stdout=stdout)
        assert len(result.lines(r"amd.*(vga|display|radeon)")) == 0
        assert result.lines(r"intel.*(vga|display|graphics)") == [
            "00:02.0 VGA compatible controller: Intel Corporation UHD Graphics"
        ]


class TestToolRunner:
    """Tests for ToolRunner against real processes."""

    @pytest.mark.unit
    def test_missing_tool(self):
        """Missing executables are reported, not raised."""
        runner = ToolRunner(timeout=5)
        result = runner.run(["ai-base-no-such-tool", "--version"])
        assert result.found is False
        assert result.returncode == EXIT_NOT_FOUND
        assert runner.has("ai-base-no-such-tool") is False

    @pytest.mark.unit
    def test_captures_output(self):
        """stdout and exit status are captured."""
        runner = ToolRunner(timeout=30)
        result = runner.run([sys.executable, "-c", "print('GPU0: test')"])
        assert result.ok
        assert result.lines() == ["GPU0: test"]

    @pytest.mark.unit
    def test_undecodable_output_is_replaced(self, tmp_path):
        """Bytes that are not UTF-8 are replaced instead of raising."""
        lspci = tmp_path / "lspci"
        lspci.write_text(
            "#!/bin/sh\n"
            "printf '00:02.0 VGA compatible controller: Intel \\377\\376 Graphics\\n'\n"
        )
        lspci.chmod(0o755)
        runner = ToolRunner(timeout=30, path=str(tmp_path))
        result = runner.run(["lspci"])
        assert result.ok
        assert "�" in result.stdout
        assert result.lines(r"intel.*graphics") == [result.stdout.strip()]

    @pytest.mark.unit
    def test_nonzero_exit(self):
        """Non-zero exits are not ok."""
        runner = ToolRunner(timeout=30)
        result = runner.run([sys.executable, "-c", "import sys; sys.exit(3)"])
        assert result.found is True
        assert result.returncode == 3
        assert result.ok is False

    @pytest.mark.unit
    @pytest.mark.slow
    def test_timeout(self):
        """Hung tools time out instead of blocking the command."""
        runner = ToolRunner(timeout=1)
        result = runner.run([sys.executable, "-c", "import time; time.sleep(10)"])
        assert result.timed_out is True
        assert result.ok is False

    @pytest.mark.unit
    def test_timeout_from_environment(self, monkeypatch):
        """Default timeout comes from AI_BASE_PROBE_TIMEOUT."""
        monkeypatch.setenv("AI_BASE_PROBE_TIMEOUT", "4")
        assert ToolRunner().timeout == 4

    @pytest.mark.unit
    def test_glob_and_exists(self, tmp_path):
        """File helpers only report regular files."""
        (tmp_path / "llama-server").write_text("")
        (tmp_path / "llama-cli").write_text("")
        (tmp_path / "llama-dir").mkdir()
        runner = ToolRunner()
        assert runner.exists(tmp_path / "llama-cli") is True
        assert runner.exists(tmp_path / "llama-dir") is False
        assert [p.name for p in runner.glob(tmp_path, "llama-*")] == [
            "llama-cli",
            "llama-server",
        ]
        assert runner.glob(tmp_path / "missing", "*") == []

    @pytest.mark.unit
    def test_read_text(self, tmp_path):
        """Unreadable files return None."""
        release = tmp_path / "os-release"
        release.write_text('VERSION="24.04 LTS (Noble Numbat)"\n')
        runner = ToolRunner()
        assert "Noble" in runner.read_text(release)
        assert runner.read_text(tmp_path / "absent") is None

    @pytest.mark.unit
    def test_python_module(self):
        """Installed packages report a version, missing ones None."""
        runner = ToolRunner()
        info = runner.python_module("pytest")
        assert info is not None
        assert info.version == pytest.__version__
        assert runner.python_module("ai_base_no_such_module") is None

    @pytest.mark.unit
    def test_python_module_without_distribution(self):
        """Stdlib modules are found without a version."""
        info = ToolRunner().python_module("json")
        assert info is not None
        assert info.name == "json"
