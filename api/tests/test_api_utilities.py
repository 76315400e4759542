# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for API utilities.
"""

import pytest
from datetime import datetime, date
from bson import ObjectId
from flask import Flask

from utils.request import HeaderUtils, EcoBiteJSONProvider


class TestHeaderUtils:

    def setup_method(self):
        self.app = Flask(__name__)

    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc.def", "abc.def"),
        ("bearer  abc.def ", "abc.def"),
        ("Bearer ", None),
        ("Basic dXNlcjpwYXNz", None),
        ("", None),
    ])
    def test_get_bearer_token(self, header, expected):
        with self.app.test_request_context('/test', headers={"Authorization": header}):
            assert HeaderUtils.get_bearer_token() == expected


class TestJSONProvider:

    def setup_method(self):
        self.app = Flask(__name__)
        self.app.json = EcoBiteJSONProvider(self.app)

    def test_datetimes_are_iso(self):
        payload = self.app.json.dumps({"createdAt": datetime(2025, 6, 1, 12, 30), "day": date(2025, 6, 1)})
        assert payload == '{"createdAt": "2025-06-01T12:30:00", "day": "2025-06-01"}'

    def test_object_ids_are_strings(self):
        object_id = ObjectId("64b0000000000000000000d1")
        assert self.app.json.dumps({"id": object_id}) == '{"id": "64b0000000000000000000d1"}'

    def test_unknown_types_still_fail(self):
        with pytest.raises(TypeError):
            self.app.json.dumps({"value": object()})
