# Offset pagination over an ORM query
from sqlalchemy.orm import Query

from app.schemas.common import PageParams


def paginate(query: Query, params: PageParams) -> tuple[list, int]:
    total = query.order_by(None).count()
    items = query.offset(params.offset).limit(params.page_size).all()
    return items, total
