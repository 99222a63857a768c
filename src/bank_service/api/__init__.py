"""HTTP layer - XML request handlers, middleware and operational endpoints."""
