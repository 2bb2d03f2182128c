"""
HTTP endpoints for the bulk measurement import.

POST /import/preview  decode + map + validate an uploaded file, no writes
POST /import/commit   commit reviewed rows with per-row partial failure

Both are restricted to admin/manager principals.
"""

from typing import Any, Callable, Dict, Iterator, List, Literal, Optional

import click
import psycopg
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tailor_import.auth import IMPORT_ROLES, Principal, require_role
from tailor_import.commit import commit_import
from tailor_import.config import Settings, load_settings
from tailor_import.decode import decode_base64
from tailor_import.rows import preview_file
from tailor_import.shared import AuthorizationError, DecodeError


class PreviewRequest(BaseModel):
    fileData: Optional[str] = None
    fileName: str = "import.csv"
    defaultUnit: Optional[Literal["cm", "in"]] = None


class CommitRequest(BaseModel):
    importId: Optional[str] = None
    rows: Any = None
    columnMapping: Optional[Dict[str, str]] = None
    fileName: str = "import.csv"
    defaultUnit: Optional[Literal["cm", "in"]] = None


class PreviewResponse(BaseModel):
    importId: str
    fileName: Optional[str]
    preview: Dict[str, Any]
    statistics: Dict[str, int]
    columnMapping: Dict[str, str]
    headers: List[str]


class CommitResponse(BaseModel):
    importId: str
    successCount: int
    failedCount: int
    errors: List[Dict[str, Any]]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_connection(request: Request) -> Iterator[psycopg.Connection]:
    """One connection per request; the commit loop never leaves it."""
    settings: Settings = request.app.state.settings
    conn = psycopg.connect(settings.db_dsn, autocommit=False)
    try:
        yield conn
    finally:
        conn.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(title="tailor-import")
    app.state.settings = settings or load_settings()

    @app.exception_handler(AuthorizationError)
    async def _authorization_error(request: Request, exc: AuthorizationError):
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.exception_handler(DecodeError)
    async def _decode_error(request: Request, exc: DecodeError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    import_principal: Callable[[Request], Principal] = require_role(*IMPORT_ROLES)

    @app.post("/import/preview", response_model=PreviewResponse)
    def preview_import(
        body: PreviewRequest,
        principal: Principal = Depends(import_principal),
        settings: Settings = Depends(get_settings),
    ):
        """
        Parse an uploaded CSV/XLSX file and return a preview with validation.

        Nothing is written.  The preview can be re-requested and discarded freely.
        """
        if not body.fileData:
            raise HTTPException(status_code=400, detail="No file data provided")

        data = decode_base64(body.fileData)
        return preview_file(
            data,
            body.fileName,
            default_unit=body.defaultUnit or settings.default_unit,
            limit=settings.preview_limit,
        )

    @app.post("/import/commit", response_model=CommitResponse)
    def commit_rows(
        body: CommitRequest,
        principal: Principal = Depends(import_principal),
        settings: Settings = Depends(get_settings),
        conn: psycopg.Connection = Depends(get_connection),
    ):
        """
        Commit reviewed rows.

        Returns 200 even when some rows failed; failedCount > 0 is a partial
        success and the per-row errors are listed in the response.
        """
        if not isinstance(body.rows, list) or not all(isinstance(r, dict) for r in body.rows):
            raise HTTPException(status_code=400, detail="Invalid request: rows array required")

        try:
            result = commit_import(
                conn,
                body.rows,
                body.columnMapping or {},
                file_name=body.fileName,
                imported_by=principal.user_id,
                default_unit=body.defaultUnit or settings.default_unit,
                import_id=body.importId,
                merge_policy=settings.merge_policy,
            )
        except Exception as exc:
            click.echo(f"[{body.importId}] Commit import error: {exc}", err=True)
            raise HTTPException(status_code=500, detail="Internal server error") from exc
        return result.to_dict()

    return app
