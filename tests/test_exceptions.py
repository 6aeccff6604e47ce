"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from bizsync.exceptions import (
    ApiConnectionError,
    ApiError,
    BizSyncError,
    ConfigValidationError,
    PayloadValidationError,
    RelationshipCycleError,
    RelationshipNotFoundError,
    RetryExhaustedError,
)


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        self.assertTrue(issubclass(BizSyncError, RuntimeError))
        for error_cls in (
            ApiError,
            ConfigValidationError,
            PayloadValidationError,
            RelationshipCycleError,
            RelationshipNotFoundError,
            RetryExhaustedError,
        ):
            self.assertTrue(issubclass(error_cls, BizSyncError))
        self.assertTrue(issubclass(ApiConnectionError, ApiError))

    def test_api_error_keeps_status_code(self) -> None:
        self.assertEqual(ApiError("nope", status_code=418).status_code, 418)
        self.assertIsNone(ApiConnectionError("down").status_code)


if __name__ == "__main__":
    unittest.main()
