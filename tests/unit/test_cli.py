"""Unit tests for the tailor_import.cli entrypoint (preview-only paths)."""

from __future__ import annotations

import json

from click.testing import CliRunner

from tailor_import.cli import main


def _write_csv(tmp_path, content: str):
    path = tmp_path / "measurements.csv"
    path.write_text(content, encoding="utf-8")
    return path


class TestCliPreviewOnly:
    def test_preview_only_writes_report(self, tmp_path):
        csv_path = _write_csv(tmp_path, "Name,Sleeve Lenght,Colour\nAda,60,red\n,58,blue\n")
        reports = tmp_path / "reports"
        result = CliRunner().invoke(main, [
            "--file", str(csv_path),
            "--preview-only",
            "--run-id", "run-abc",
            "--reports-dir", str(reports),
        ])
        assert result.exit_code == 0, result.output
        assert "2 rows read, 1 valid, 1 invalid" in result.output
        assert "Ignored columns: ['Colour']" in result.output

        report = json.loads((reports / "run-abc.json").read_text())
        assert report["mode"] == "preview"
        assert report["result"] == {"totalRows": 2, "validRows": 1, "invalidRows": 1}
        assert report["counters"]["rows_rejected"] == 1

    def test_empty_file_exits_non_zero(self, tmp_path):
        csv_path = _write_csv(tmp_path, "Name,Chest\n")
        result = CliRunner().invoke(main, ["--file", str(csv_path), "--preview-only"])
        assert result.exit_code == 1

    def test_commit_requires_dsn(self, tmp_path):
        csv_path = _write_csv(tmp_path, "Name\nAda\n")
        result = CliRunner().invoke(main, ["--file", str(csv_path)])
        assert result.exit_code == 1
