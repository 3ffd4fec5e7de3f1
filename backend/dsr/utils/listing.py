from __future__ import annotations
from typing import Any, Callable, Dict, List, Tuple
from flask import request, abort, make_response
from sqlalchemy.orm import Query
from dsr.config.pagination import normalize_pagination
import hashlib
import json


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def compute_etag(rows: List[Dict[str, Any]], total: int, limit: int, offset: int) -> str:
    # Hash the serialized page so any field change (status, advance, redemption) busts the tag.
    body = json.dumps(rows, sort_keys=True, default=str)
    seed = f"{total}|{limit}|{offset}|{body}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int, **extra: Any) -> Dict[str, Any]:
    payload = {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }
    payload.update(extra)
    return payload


def paginated_response(q: Query, serializer: Callable[[Any], Dict[str, Any]], **extra: Any):
    """Paginate ``q``, serialize rows and answer 304 when If-None-Match matches the ETag."""
    paged_q, total, limit, offset = apply_pagination(q)
    rows = [serializer(o) for o in paged_q.all()]
    etag = compute_etag(rows, total, limit, offset)
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag:
        resp = make_response('', 304)
    else:
        resp = make_response(build_list_payload(rows, total, limit, offset, **extra))
    resp.headers['ETag'] = etag
    return resp
