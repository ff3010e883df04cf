"""
Query-string parsing and limit/offset windows for the list endpoints.

Parsers append "name: message" strings to a shared errors list so every
bad parameter is reported in a single validation error.
"""
from django.conf import settings


def parse_int(params, name, errors, minimum=None, maximum=None):
    raw = params.get(name)
    if raw in (None, ''):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        errors.append(f'{name}: must be an integer')
        return None
    if minimum is not None and value < minimum:
        errors.append(f'{name}: must be >= {minimum}')
    elif maximum is not None and value > maximum:
        errors.append(f'{name}: must be <= {maximum}')
    return value


def parse_choice(params, name, choices, default, errors):
    value = params.get(name) or default
    if value not in choices:
        errors.append(f"{name}: must be one of {', '.join(choices)}")
    return value


def paginate(queryset, limit, offset):
    """
    Apply the limit/offset window.

    Without a limit the full set is returned, unless an offset was given
    (0 included), in which case LISTING_DEFAULT_WINDOW rows are returned.
    Pagination metadata is only returned with a limit.
    """
    total = queryset.count()
    if limit is None:
        if offset is None:
            return list(queryset), None
        window = getattr(settings, 'LISTING_DEFAULT_WINDOW', 50)
        return list(queryset[offset:offset + window]), None

    offset = offset or 0
    rows = list(queryset[offset:offset + limit])
    pagination = {
        'total': total,
        'page': offset // limit + 1,
        'limit': limit,
        'hasMore': offset + limit < total,
    }
    return rows, pagination
