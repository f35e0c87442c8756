from __future__ import annotations

from fastapi import HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.imports.loader import ROW_LIMIT_EXCEEDED, load_csv_content
from app.models.tenant import Tenant
from app.schemas.imports import SubscriberImportRow
from app.schemas.subscriber import BulkImportError, BulkImportResult, SubscriberCreate
from app.services.common import get_or_404
from app.services.subscriber import subscribers

_DEFAULT_MAX_FILE_BYTES = 5 * 1024 * 1024
_DEFAULT_MAX_ROWS = 5000


def _row_error(row: int, username: str | None, error: str) -> BulkImportError:
    return BulkImportError(row=row, username=username, error=error)


def import_subscribers_from_csv(
    db: Session, tenant_id: str, content: str, max_rows: int | None = None
) -> BulkImportResult:
    """Create one subscriber per CSV row.

    Rows are independent: a malformed row, a duplicate username (in the file
    or already in the tenant) or a failed insert is reported in ``errors``
    and the remaining rows are still imported.
    """
    get_or_404(db, Tenant, tenant_id, detail="Tenant not found")
    result = BulkImportResult(created=0, failed=0)
    rows, row_errors = load_csv_content(content, SubscriberImportRow, max_rows=max_rows)
    for err in row_errors:
        result.failed += 1
        result.errors.append(_row_error(err.index, None, err.detail))

    payloads: list[tuple[int, SubscriberCreate]] = []
    for idx, import_row in rows:
        try:
            payloads.append((idx, SubscriberCreate(**import_row.model_dump())))
        except ValidationError as exc:
            result.failed += 1
            result.errors.append(
                _row_error(idx, import_row.username, exc.errors()[0].get("msg", str(exc)))
            )

    subscribers.import_rows(db, tenant_id, payloads, result=result)
    result.errors.sort(key=lambda err: err.row)
    return result


def import_subscribers_upload(
    db: Session, tenant_id: str, file: UploadFile
) -> BulkImportResult:
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="CSV file required")
    payload = file.file.read()
    if len(payload) > _DEFAULT_MAX_FILE_BYTES:
        raise HTTPException(status_code=413, detail="CSV file too large")
    try:
        content = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="Invalid UTF-8 CSV content") from exc
    result = import_subscribers_from_csv(db, tenant_id, content, max_rows=_DEFAULT_MAX_ROWS)
    if any(err.error == ROW_LIMIT_EXCEEDED for err in result.errors):
        raise HTTPException(status_code=400, detail="CSV row limit exceeded")
    return result
