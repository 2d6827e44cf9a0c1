"""Tests for the command line interface."""

import json
import subprocess
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from flowcrawl.cli import build_parser, main, options_from_args
from flowcrawl.crawl_options import CrawlOptions
from flowcrawl.flow_graph import build_flow_chart
from flowcrawl.models import CrawlResult, JobSnapshot, JobStatus


def _snapshot(status=JobStatus.COMPLETED, result=None, error=None):
    now = datetime.now()
    return JobSnapshot(
        job_id="job_test",
        url="https://ex.com/",
        status=status,
        progress=100 if status is JobStatus.COMPLETED else 30,
        message="done",
        created_at=now,
        start_time=now,
        end_time=now,
        pages_captured=0,
        error=error,
        page_errors=(),
        result=result,
        options=CrawlOptions(),
    )


class TestParser:
    """Test cases for argument parsing."""

    def test_crawl_defaults(self):
        args = build_parser().parse_args(["crawl", "ex.com"])
        options = options_from_args(args)

        assert args.url == "ex.com"
        assert options.max_pages == 20
        assert options.viewport.device == "desktop"
        assert options.full_page_capture is True
        assert options.block_resources is True

    def test_crawl_flags(self):
        args = build_parser().parse_args([
            "crawl", "ex.com",
            "--max-pages", "5",
            "--max-depth", "1",
            "--viewport", "mobile",
            "--ignore", "/logout",
            "--ignore", "/admin",
            "--wait-for", "#app",
            "--job-timeout", "30",
            "--no-block-resources",
            "--viewport-only",
        ])
        options = options_from_args(args)

        assert options.max_pages == 5
        assert options.max_depth == 1
        assert options.viewport.is_mobile
        assert options.ignore_patterns == ["/logout", "/admin"]
        assert options.wait_for_selectors == ["#app"]
        assert options.job_timeout == 30.0
        assert options.block_resources is False
        assert options.full_page_capture is False

    def test_unknown_viewport_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["crawl", "ex.com", "--viewport", "watch"])


@patch("flowcrawl.cli.setup_logging")
class TestCrawlCommand:
    """Test cases for `flowcrawl crawl`."""

    def test_unsafe_url_exits_1(self, mock_logging, capsys):
        assert main(["crawl", "http://localhost:8000/"]) == 1
        assert "not allowed" in capsys.readouterr().err

    def test_invalid_options_exit_1(self, mock_logging, capsys):
        assert main(["crawl", "ex.com", "--max-pages", "0"]) == 1
        assert "invalid crawl options" in capsys.readouterr().err

    def test_completed_crawl_writes_output(self, mock_logging, tmp_path):
        result = CrawlResult(nodes=(), flow_chart=build_flow_chart([]))
        output = tmp_path / "out" / "result.json"

        with patch("flowcrawl.cli.run_crawl", new=AsyncMock(return_value=_snapshot(result=result))) as run:
            code = main(["crawl", "ex.com", "--output", str(output)])

        assert code == 0
        assert run.await_args.args[0] == "https://ex.com/"
        data = json.loads(output.read_text())
        assert data["status"] == "completed"
        assert data["result"]["success"] is True

    def test_failed_crawl_exits_1(self, mock_logging, capsys):
        snapshot = _snapshot(status=JobStatus.FAILED, error="timeout")

        with patch("flowcrawl.cli.run_crawl", new=AsyncMock(return_value=snapshot)):
            code = main(["crawl", "ex.com"])

        assert code == 1
        out = capsys.readouterr()
        assert '"error": "timeout"' in out.out
        assert "failed" in out.err


class TestInstallBrowser:
    """Test cases for `flowcrawl install-browser`."""

    def test_success(self):
        completed = MagicMock(stdout="chromium downloaded")
        with patch("flowcrawl.cli.subprocess.run", return_value=completed) as run:
            assert main(["install-browser"]) == 0
        assert run.call_args.args[0][-2:] == ["install", "chromium"]

    def test_failure(self):
        error = subprocess.CalledProcessError(1, ["playwright"], stderr="no network")
        with patch("flowcrawl.cli.subprocess.run", side_effect=error):
            assert main(["install-browser"]) == 1
