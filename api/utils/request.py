# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request and response plumbing shared by middleware and routes.
"""

from datetime import datetime, date
from flask import request
from flask.json.provider import DefaultJSONProvider
from bson import ObjectId
from typing import Any, Optional


class HeaderUtils:

    @staticmethod
    def get_bearer_token() -> Optional[str]:
        """Token from ``Authorization: Bearer <token>``; None when absent or blank."""
        scheme, _, token = request.headers.get('Authorization', '').partition(' ')
        if scheme.lower() != 'bearer':
            return None
        return token.strip() or None


class EcoBiteJSONProvider(DefaultJSONProvider):
    """Renders datetimes as ISO 8601 and ObjectIds as strings."""

    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, ObjectId):
            return str(o)
        return DefaultJSONProvider.default(o)
