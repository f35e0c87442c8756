def list_response(items: list, limit: int, offset: int) -> dict:
    """Paged envelope matching ``app.schemas.common.ListResponse``."""
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


class ListResponseMixin:
    @classmethod
    def list_response(cls, db, tenant_id, *filters, limit: int, offset: int, **kwargs):
        items = cls.list(db, tenant_id, *filters, limit=limit, offset=offset, **kwargs)
        return list_response(items, limit, offset)
