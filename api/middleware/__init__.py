# SPDX-License-Identifier: Apache-2.0

"""
Request-side plumbing: JWT guards, CORS, fixed-window rate limits, body and
query parsing, and the handlers that turn exceptions into problem documents.
"""
