# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
CORS for the EcoBite web client.

Allowed origins come from ``CORS_ORIGINS`` (comma separated glob patterns
such as ``https://ecobite-*.vercel.app``) plus ``FRONTEND_URL``. With
neither set every origin is accepted. The request origin is echoed back
rather than ``*`` so credentialed requests keep working.
"""

from fnmatch import fnmatchcase
from flask import Flask, request, make_response
from typing import Dict, List, Optional
import os
import logging

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ('GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS')
ALLOWED_HEADERS = ('Accept', 'Authorization', 'Content-Type', 'X-Requested-With', 'X-Request-ID')
EXPOSED_HEADERS = ('Content-Length', 'Content-Type', 'X-Trace-Id', 'X-RateLimit-Limit', 'X-RateLimit-Remaining')


def origins_from_env() -> List[str]:
    origins = [o.strip() for o in os.getenv('CORS_ORIGINS', '').split(',') if o.strip()]
    frontend_url = os.getenv('FRONTEND_URL')
    if origins and frontend_url:
        origins.append(frontend_url.rstrip('/'))
    return origins or ['*']


class CORSMiddleware:
    """Answers preflight requests and decorates responses for allowed origins."""

    def __init__(
        self,
        app: Flask,
        allowed_origins: Optional[List[str]] = None,
        allow_credentials: bool = True,
        max_age: int = 86400
    ):
        self.app = app
        self.allowed_origins = allowed_origins or origins_from_env()
        self.allow_credentials = allow_credentials
        self.max_age = max_age

        self._static_headers: Dict[str, str] = {
            'Vary': 'Origin',
            'Access-Control-Allow-Methods': ', '.join(ALLOWED_METHODS),
            'Access-Control-Allow-Headers': ', '.join(ALLOWED_HEADERS),
            'Access-Control-Expose-Headers': ', '.join(EXPOSED_HEADERS),
            'Access-Control-Max-Age': str(max_age),
        }
        if allow_credentials:
            self._static_headers['Access-Control-Allow-Credentials'] = 'true'

        app.before_request(self._preflight)
        app.after_request(self._decorate)

    def is_origin_allowed(self, origin: Optional[str]) -> bool:
        if not origin:
            return False
        return any(fnmatchcase(origin, pattern) for pattern in self.allowed_origins)

    def add_cors_headers(self, response, origin: str):
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers.update(self._static_headers)
        return response

    def _preflight(self):
        if request.method != 'OPTIONS':
            return None

        origin = request.headers.get('Origin')
        if not self.is_origin_allowed(origin):
            logger.warning(f"CORS preflight rejected for origin: {origin}")
            return make_response('', 403)
        return self.add_cors_headers(make_response('', 204), origin)

    def _decorate(self, response):
        origin = request.headers.get('Origin')
        if not origin:
            return response
        if self.is_origin_allowed(origin):
            return self.add_cors_headers(response, origin)
        logger.warning(f"CORS rejected for origin: {origin}")
        return response


def configure_cors(app: Flask, **kwargs) -> CORSMiddleware:
    cors = CORSMiddleware(app, **kwargs)
    logger.info(f"CORS configured with origins: {cors.allowed_origins}")
    return cors
