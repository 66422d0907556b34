"""
ETag Helper

Generates ETags (checksums) for JSON API responses and answers conditional
requests carrying If-None-Match with 304 Not Modified.
"""

import hashlib
import json
from functools import wraps
from typing import Any, Callable

from flask import Response, jsonify, make_response, request


def generate_etag(data: Any) -> str:
    """Quoted MD5 of ``data`` serialized with sorted keys, so equal payloads share a tag."""
    json_str = json.dumps(data, sort_keys=True, default=str)
    return f'"{hashlib.md5(json_str.encode("utf-8")).hexdigest()}"'


def _not_modified(etag: str) -> Response:
    response = make_response('', 304)
    response.headers['ETag'] = etag
    response.headers['Cache-Control'] = 'no-cache'
    return response


def with_etag(f: Callable) -> Callable:
    """
    Tag 200 JSON responses of a list endpoint; answer a matching If-None-Match with 304.

    Used on the task list and the study plan so the client can poll cheaply.
    Errors and non-JSON responses pass through untouched.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        result = f(*args, **kwargs)

        status_code = 200
        if isinstance(result, tuple):
            body, status_code = result[0], result[1]
        else:
            body = result

        if status_code != 200:
            return result

        if isinstance(body, Response):
            if not body.is_json:
                return result
            response = body
        elif isinstance(body, (dict, list)):
            response = jsonify(body)
        else:
            return result

        etag = generate_etag(response.get_json())
        if request.headers.get('If-None-Match') == etag:
            return _not_modified(etag)

        response.headers['ETag'] = etag
        response.headers['Cache-Control'] = 'no-cache'
        return response

    return decorated_function
