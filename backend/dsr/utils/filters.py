from __future__ import annotations
from typing import Any, Dict
from datetime import date
from flask import abort


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Generic filter builder.

    specs: { param_name: { 'op': callable(query, value)->query, 'coerce': type/func, 'validate': callable(optional) } }
    """
    for name, meta in specs.items():
        if name not in params or params[name] in (None, ''):
            continue
        val = params[name]
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except Exception:
                abort(400, description=f'{name} invalid')
        if 'validate' in meta and not meta['validate'](val):
            abort(400, description=f'{name} invalid')
        query = meta['op'](query, val)
    return query


def date_range_specs(column) -> Dict[str, Dict[str, Any]]:
    """``date_from`` / ``date_to`` (inclusive, YYYY-MM-DD) over a Date column."""
    return {
        'date_from': {'coerce': date.fromisoformat, 'op': lambda qu, v: qu.filter(column >= v)},
        'date_to': {'coerce': date.fromisoformat, 'op': lambda qu, v: qu.filter(column <= v)},
        'date': {'coerce': date.fromisoformat, 'op': lambda qu, v: qu.filter(column == v)},
    }
