from flask import current_app, request


def page_args():
    """Read ``page`` / ``limit`` from the query string, clamped to sane bounds."""
    page = max(1, request.args.get("page", 1, type=int) or 1)
    limit = request.args.get("limit", current_app.config["DEFAULT_PAGE_SIZE"], type=int)
    limit = min(current_app.config["MAX_PAGE_SIZE"], max(1, limit or 1))
    return page, limit


def paginate(query, serializer=None):
    page, limit = page_args()
    result = query.paginate(page=page, per_page=limit, error_out=False)
    serializer = serializer or (lambda obj: obj.to_dict())
    return {
        "items": [serializer(item) for item in result.items],
        "pagination": {
            "page": result.page,
            "limit": result.per_page,
            "total": result.total,
            "total_pages": result.pages,
            "has_next": result.has_next,
            "has_prev": result.has_prev,
        },
    }
