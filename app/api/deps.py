from fastapi import Query

from app.db import get_db


def tenant_scope(tenant_id: str = Query(..., description="Owning tenant id")) -> str:
    return tenant_id


__all__ = ["get_db", "tenant_scope"]
