"""tailor_import.shared

Shared utilities used by the HTTP service and the CLI.
Includes the exception hierarchy, RunCounters, customer / import-run DB
helpers, and report-writing support.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import psycopg
from psycopg.types.json import Jsonb


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ImportPipelineError(Exception):
    """Base class for request-level import failures."""


class DecodeError(ImportPipelineError):
    """Raised when an uploaded file is empty or cannot be parsed."""


class AuthorizationError(ImportPipelineError):
    """Raised when the caller is unauthenticated or lacks an allowed role."""


# ---------------------------------------------------------------------------
# Customer merge policy
# ---------------------------------------------------------------------------

class MergePolicy(str, enum.Enum):
    """How an import row updates a customer matched by phone or email.

    Null incoming values never touch stored values under either policy.
    """

    # Stored non-null values are kept; only stored nulls are filled.
    FILL_MISSING = "fill_missing"
    # Every non-null incoming value replaces the stored one.
    LATEST_WINS = "latest_wins"


# ---------------------------------------------------------------------------
# RunCounters
# ---------------------------------------------------------------------------

@dataclass
class RunCounters:
    rows_read: int = 0
    rows_rejected: int = 0
    db_phase_errors: int = 0
    customers_inserted: int = 0
    customers_matched_existing: int = 0
    measurements_inserted: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_read": self.rows_read,
            "rows_rejected": self.rows_rejected,
            "db_phase_errors": self.db_phase_errors,
            "customers_inserted": self.customers_inserted,
            "customers_matched_existing": self.customers_matched_existing,
            "measurements_inserted": self.measurements_inserted,
            "warnings": self.warnings,
        }


# ---------------------------------------------------------------------------
# Shared DB helpers — customer
# ---------------------------------------------------------------------------

def resolve_customer(
    conn: psycopg.Connection,
    phone: str | None,
    email: str | None,
) -> str | None:
    """Return the id of the first customer matching phone OR email.

    A null phone and an empty email never match.  When phone and email point
    at two different customers the oldest one wins; no reconciliation is done.
    """
    if not phone and not email:
        return None
    row = conn.execute(
        """
        SELECT id FROM customers
        WHERE (phone = %(phone)s AND %(phone)s::text IS NOT NULL)
           OR (email = %(email)s AND %(email)s::text IS NOT NULL AND %(email)s::text <> '')
        ORDER BY created_at ASC, id ASC
        LIMIT 1
        """,
        {"phone": phone, "email": email},
    ).fetchone()
    return str(row[0]) if row else None


def insert_customer(
    conn: psycopg.Connection,
    name: str | None,
    phone: str | None,
    email: str | None,
    address: str | None,
) -> str:
    row = conn.execute(
        """
        INSERT INTO customers (name, phone, email, address)
        VALUES (%s, %s, %s, %s)
        RETURNING id
        """,
        (name or "Unknown", phone, email, address),
    ).fetchone()
    return str(row[0])


def merge_customer(
    conn: psycopg.Connection,
    customer_id: str,
    name: str | None,
    phone: str | None,
    email: str | None,
    address: str | None,
    policy: MergePolicy = MergePolicy.FILL_MISSING,
) -> None:
    """Merge incoming contact fields into an existing customer row."""
    if policy is MergePolicy.LATEST_WINS:
        sql = """
            UPDATE customers
            SET name = COALESCE(%(name)s, name),
                phone = COALESCE(%(phone)s, phone),
                email = COALESCE(%(email)s, email),
                address = COALESCE(%(address)s, address),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %(id)s
        """
    else:
        sql = """
            UPDATE customers
            SET name = COALESCE(name, %(name)s),
                phone = COALESCE(phone, %(phone)s),
                email = COALESCE(email, %(email)s),
                address = COALESCE(address, %(address)s),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %(id)s
        """
    conn.execute(
        sql,
        {"id": customer_id, "name": name, "phone": phone, "email": email, "address": address},
    )


def resolve_or_insert_customer(
    conn: psycopg.Connection,
    name: str | None,
    phone: str | None,
    email: str | None,
    address: str | None,
    policy: MergePolicy,
    counters: RunCounters,
) -> str:
    """Resolve by phone → email, merging into the match, or insert new.

    Caller manages transaction/savepoint.
    """
    customer_id = resolve_customer(conn, phone, email)
    if customer_id is not None:
        merge_customer(conn, customer_id, name, phone, email, address, policy)
        counters.customers_matched_existing += 1
        return customer_id

    customer_id = insert_customer(conn, name, phone, email, address)
    counters.customers_inserted += 1
    return customer_id


# ---------------------------------------------------------------------------
# Shared DB helpers — import run + activity log
# ---------------------------------------------------------------------------

def insert_import_run(
    conn: psycopg.Connection,
    imported_by: str | None,
    file_name: str,
    total_rows: int,
) -> str:
    row = conn.execute(
        """
        INSERT INTO imports
          (imported_by, file_name, status, total_rows, successful_rows, failed_rows)
        VALUES (%s, %s, 'pending', %s, 0, 0)
        RETURNING id
        """,
        (imported_by, file_name, total_rows),
    ).fetchone()
    return str(row[0])


def complete_import_run(
    conn: psycopg.Connection,
    import_run_id: str,
    successful_rows: int,
    failed_rows: int,
    report: dict[str, Any],
) -> None:
    conn.execute(
        """
        UPDATE imports
        SET status = 'completed',
            successful_rows = %s,
            failed_rows = %s,
            report = %s,
            completed_at = CURRENT_TIMESTAMP
        WHERE id = %s
        """,
        (successful_rows, failed_rows, Jsonb(report), import_run_id),
    )


def insert_activity_log(
    conn: psycopg.Connection,
    user_id: str | None,
    action: str,
    resource_type: str,
    resource_id: str,
    details: dict[str, Any],
) -> None:
    conn.execute(
        """
        INSERT INTO activity_logs (user_id, action, resource_type, resource_id, details)
        VALUES (%s, %s, %s, %s, %s)
        """,
        (user_id, action, resource_type, resource_id, Jsonb(details)),
    )


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    mode: str,
    source_paths: dict[str, str],
    counters: RunCounters,
    result: dict[str, Any] | None = None,
    reports_dir: Path = Path("./artifacts/reports"),
) -> Path:
    report = {
        "run_id": run_id,
        "mode": mode,
        "started_at": started_at,
        "finished_at": datetime.utcnow().isoformat(),
        **source_paths,
        "counters": counters.to_dict(),
    }
    if result is not None:
        report["result"] = result
    report_path = reports_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
