"""tailor_import.commit

Commit phase of the measurement import.

Rows are re-normalized and re-validated here (a client-held "isValid" flag
from the preview is never trusted), then written one at a time.  Each valid
row resolves or creates its customer and inserts one measurement inside its
own transaction, so a failed row rolls back only its own writes and the batch
carries on.  The loop is sequential on a single connection: a row must see
the customer inserted by an earlier row sharing its phone number.

Commit is not idempotent.  Submitting the same rows twice inserts the
measurements twice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import click
import psycopg

from tailor_import.rows import (
    CanonicalMeasurementRow,
    ValidatedRow,
    generate_entry_id,
    process_rows,
)
from tailor_import.shared import (
    MergePolicy,
    RunCounters,
    complete_import_run,
    insert_activity_log,
    insert_import_run,
    resolve_or_insert_customer,
)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RowOutcome:
    """Result of committing one row: success, or the reason it failed."""

    row_number: int
    ok: bool
    customer_id: str | None = None
    measurement_id: str | None = None
    error: str | None = None
    errors: list[str] = field(default_factory=list)

    @classmethod
    def rejected(cls, row: ValidatedRow) -> "RowOutcome":
        return cls(row_number=row.row_number, ok=False, errors=row.error_messages())

    def report_entry(self) -> dict[str, Any]:
        if self.error is not None:
            return {"rowNumber": self.row_number, "error": self.error}
        return {"rowNumber": self.row_number, "errors": self.errors}


@dataclass
class CommitResult:
    import_id: str
    success_count: int
    failed_count: int
    errors: list[dict[str, Any]]
    outcomes: list[RowOutcome] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "importId": self.import_id,
            "successCount": self.success_count,
            "failedCount": self.failed_count,
            "errors": self.errors,
        }


# ---------------------------------------------------------------------------
# DB helpers — measurement
# ---------------------------------------------------------------------------

def insert_measurement(
    conn: psycopg.Connection,
    customer_id: str,
    created_by: str | None,
    entry_id: str,
    row: CanonicalMeasurementRow,
) -> str:
    new_row = conn.execute(
        """
        INSERT INTO measurements (
          customer_id, created_by, entry_id, units,
          across_back, chest, sleeve_length, around_arm, neck, top_length, wrist,
          trouser_waist, trouser_thigh, trouser_knee, trouser_length, trouser_bars,
          additional_info, branch, version
        ) VALUES (
          %s, %s, %s, %s,
          %s, %s, %s, %s, %s, %s, %s,
          %s, %s, %s, %s, %s,
          %s, %s, 1
        )
        RETURNING id
        """,
        (
            customer_id, created_by, entry_id, row.units,
            row.across_back, row.chest, row.sleeve_length, row.around_arm,
            row.neck, row.top_length, row.wrist,
            row.trouser_waist, row.trouser_thigh, row.trouser_knee,
            row.trouser_length, row.trouser_bars,
            row.additional_info, row.branch,
        ),
    ).fetchone()
    return str(new_row[0])


# ---------------------------------------------------------------------------
# Row processing
# ---------------------------------------------------------------------------

def _process_row(
    conn: psycopg.Connection,
    row: CanonicalMeasurementRow,
    imported_by: str | None,
    merge_policy: MergePolicy,
    counters: RunCounters,
) -> RowOutcome:
    """Resolve customer + insert measurement.  Caller manages transaction."""
    customer_id = resolve_or_insert_customer(
        conn,
        row.client_name,
        row.client_phone,
        row.client_email,
        row.client_address,
        merge_policy,
        counters,
    )
    entry_id = row.entry_id or generate_entry_id()
    measurement_id = insert_measurement(conn, customer_id, imported_by, entry_id, row)
    counters.measurements_inserted += 1
    return RowOutcome(
        row_number=row.row_number,
        ok=True,
        customer_id=customer_id,
        measurement_id=measurement_id,
    )


def _commit_row(
    conn: psycopg.Connection,
    row: CanonicalMeasurementRow,
    imported_by: str | None,
    merge_policy: MergePolicy,
    counters: RunCounters,
    run_id: str,
) -> RowOutcome:
    try:
        with conn.transaction():
            return _process_row(conn, row, imported_by, merge_policy, counters)
    # ValueError covers values psycopg cannot encode (e.g. lone surrogates).
    except (psycopg.Error, ValueError) as exc:
        counters.db_phase_errors += 1
        message = str(exc).strip() or exc.__class__.__name__
        click.echo(f"[{run_id}] row {row.row_number} failed: {message}", err=True)
        return RowOutcome(row_number=row.row_number, ok=False, error=message)


# ---------------------------------------------------------------------------
# Committer
# ---------------------------------------------------------------------------

def commit_import(
    conn: psycopg.Connection,
    rows: Sequence[Mapping[str, Any]],
    column_mapping: Mapping[str, str],
    *,
    file_name: str,
    imported_by: str | None,
    default_unit: str = "cm",
    import_id: str | None = None,
    merge_policy: MergePolicy = MergePolicy.FILL_MISSING,
    counters: RunCounters | None = None,
) -> CommitResult:
    """Commit raw source rows through the customer/measurement store.

    `imported_by` is recorded as measurements.created_by, imports.imported_by
    and the activity-log user.  `import_id` is the transient id from the
    preview; it is only used for log correlation.

    Always returns success_count + failed_count == len(rows).
    """
    counters = counters if counters is not None else RunCounters()
    validated = process_rows(rows, column_mapping, default_unit)
    counters.rows_read += len(validated)

    with conn.transaction():
        import_run_id = insert_import_run(conn, imported_by, file_name, len(validated))
    run_id = import_run_id
    click.echo(
        f"[{run_id}] Import run started: file={file_name!r} rows={len(validated)}"
        + (f" preview_id={import_id}" if import_id else "")
    )

    rejected: list[RowOutcome] = []
    committed: list[RowOutcome] = []
    for vrow in validated:
        if not vrow.is_valid:
            counters.rows_rejected += 1
            rejected.append(RowOutcome.rejected(vrow))
            continue
        committed.append(
            _commit_row(conn, vrow.row, imported_by, merge_policy, counters, run_id)
        )

    outcomes = rejected + committed
    success_count = sum(1 for o in outcomes if o.ok)
    failed_count = len(outcomes) - success_count
    errors = [o.report_entry() for o in outcomes if not o.ok]

    with conn.transaction():
        complete_import_run(
            conn, import_run_id, success_count, failed_count, {"errors": errors}
        )

    try:
        with conn.transaction():
            insert_activity_log(
                conn,
                imported_by,
                "import",
                "import",
                import_run_id,
                {
                    "fileName": file_name,
                    "successCount": success_count,
                    "failedCount": failed_count,
                },
            )
    except psycopg.Error as exc:
        counters.warnings.append(f"activity log write failed: {exc}")
        click.echo(f"[{run_id}] Could not log activity: {exc}", err=True)

    click.echo(
        f"[{run_id}] Import run completed: {success_count} succeeded, "
        f"{failed_count} failed "
        f"(customers inserted={counters.customers_inserted}, "
        f"matched={counters.customers_matched_existing})"
    )
    return CommitResult(
        import_id=import_run_id,
        success_count=success_count,
        failed_count=failed_count,
        errors=errors,
        outcomes=outcomes,
    )
