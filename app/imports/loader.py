from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

ROW_LIMIT_EXCEEDED = "Row limit exceeded"


@dataclass
class RowError:
    index: int
    detail: str


def _validation_detail(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or str(exc)


def load_csv_content(
    content: str, model_cls: type[ModelT], max_rows: int | None = None
) -> tuple[list[tuple[int, ModelT]], list[RowError]]:
    items: list[tuple[int, ModelT]] = []
    errors: list[RowError] = []
    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
    for idx, row in enumerate(reader, start=1):
        if max_rows is not None and idx > max_rows:
            errors.append(RowError(index=idx, detail=ROW_LIMIT_EXCEEDED))
            break
        try:
            items.append((idx, model_cls.model_validate(row)))
        except ValidationError as exc:
            errors.append(RowError(index=idx, detail=_validation_detail(exc)))
    return items, errors

