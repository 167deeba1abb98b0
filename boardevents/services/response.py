def list_response(items: list, limit: int, offset: int) -> dict:
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


class ListResponseMixin:
    """Adds ``list_response`` to services exposing ``list(db, ..., limit, offset)``."""

    @classmethod
    def list_response(cls, db, *args, limit: int, offset: int, **kwargs):
        items = cls.list(db, *args, limit=limit, offset=offset, **kwargs)
        return list_response(items, limit, offset)
