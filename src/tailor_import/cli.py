"""tailor_import.cli

Command-line entrypoint for importing a measurements spreadsheet.

Usage:
    python -m tailor_import.cli \\
        --db-dsn "$DB_DSN" \\
        --file "assets/measurements-2024-06-14.xlsx" \\
        --default-unit cm \\
        --imported-by "3f0c2a9e-6a51-4c43-9e55-1b0c7d2f8a10"

Usage (preview only, no database writes):
    python -m tailor_import.cli --db-dsn "$DB_DSN" --file export.csv --preview-only
"""

from __future__ import annotations

import sys
import uuid
from datetime import datetime
from pathlib import Path

import click
import psycopg

from tailor_import.commit import commit_import
from tailor_import.decode import decode_file
from tailor_import.rows import preview_table
from tailor_import.shared import (
    DecodeError,
    MergePolicy,
    RunCounters,
    write_run_report,
)


@click.command()
@click.option("--db-dsn", default=None, help="PostgreSQL DSN (required unless --preview-only)")
@click.option("--file", "file_path", required=True, type=click.Path(exists=True, dir_okay=False), help="CSV or XLSX file")
@click.option(
    "--default-unit",
    default="cm",
    type=click.Choice(["cm", "in"]),
    show_default=True,
    help="Unit for rows without a recognizable units column",
)
@click.option("--imported-by", default=None, help="User id recorded as created_by / imported_by")
@click.option(
    "--merge-policy",
    default=MergePolicy.FILL_MISSING.value,
    type=click.Choice([p.value for p in MergePolicy]),
    show_default=True,
    help="How rows update a customer matched by phone or email",
)
@click.option("--preview-only", is_flag=True, default=False, help="Decode and validate only; skip all DB operations")
@click.option("--preview-limit", default=10, type=int, show_default=True)
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option(
    "--reports-dir",
    default="./artifacts/reports",
    show_default=True,
    type=click.Path(file_okay=False),
)
def main(
    db_dsn: str | None,
    file_path: str,
    default_unit: str,
    imported_by: str | None,
    merge_policy: str,
    preview_only: bool,
    preview_limit: int,
    run_id: str | None,
    reports_dir: str,
) -> None:
    """Import a measurements spreadsheet into customers + measurements."""
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.utcnow().isoformat()
    counters = RunCounters()
    path = Path(file_path)

    click.echo(f"[{run_id}] Starting import of {path.name} (preview_only={preview_only})")

    if not preview_only and not db_dsn:
        click.echo(f"[{run_id}] ERROR: --db-dsn is required unless --preview-only", err=True)
        sys.exit(1)

    try:
        table = decode_file(path.read_bytes(), path.name)
    except DecodeError as exc:
        click.echo(f"[{run_id}] FATAL: {exc}", err=True)
        sys.exit(1)

    mapping, _, preview = preview_table(table, default_unit, preview_limit)
    unmapped = [h for h in table.headers if h not in mapping]
    click.echo(
        f"[{run_id}] Pre-scan: {preview.total_rows} rows read, "
        f"{preview.valid_rows} valid, {preview.invalid_rows} invalid"
    )
    click.echo(f"[{run_id}] Column mapping: {mapping}")
    if unmapped:
        click.echo(f"[{run_id}] Ignored columns: {unmapped}")
    for vrow in preview.rows:
        status = "ok" if vrow.is_valid else "; ".join(vrow.error_messages())
        click.echo(f"[{run_id}]   row {vrow.row_number}: {vrow.row.data()} [{status}]")

    if preview_only:
        counters.rows_read = preview.total_rows
        counters.rows_rejected = preview.invalid_rows
        report_path = write_run_report(
            run_id, started_at, "preview", {"file_path": str(path)}, counters,
            result=preview.statistics(), reports_dir=Path(reports_dir),
        )
        click.echo(f"[{run_id}] Run report: {report_path}")
        return

    conn = psycopg.connect(db_dsn, autocommit=False)
    try:
        result = commit_import(
            conn,
            table.rows,
            mapping,
            file_name=path.name,
            imported_by=imported_by,
            default_unit=default_unit,
            import_id=run_id,
            merge_policy=MergePolicy(merge_policy),
            counters=counters,
        )
    finally:
        conn.close()

    click.echo(
        f"[{run_id}] Import completed: {result.success_count} imported, "
        f"{result.failed_count} failed (import_id={result.import_id})"
    )
    for entry in result.errors:
        detail = entry.get("error") or "; ".join(entry.get("errors", []))
        click.echo(f"[{run_id}]   row {entry['rowNumber']}: {detail}", err=True)

    report_path = write_run_report(
        run_id, started_at, "commit", {"file_path": str(path)}, counters,
        result=result.to_dict(), reports_dir=Path(reports_dir),
    )
    click.echo(f"[{run_id}] Run report: {report_path}")


if __name__ == "__main__":
    main()
