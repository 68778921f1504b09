"""
Railway-Oriented Programming (ROP) support for ct-ev-scan.

Explicit, composable error handling: components return Result values,
failures carry an ErrorCode from the scan's error taxonomy.

    from railway import ErrorCode, Result

    def parse_batch_size(raw: str) -> Result[int]:
        if not raw.isdigit():
            return Result.failure(ErrorCode.CONFIGURATION_ERROR, "batch size must be numeric")
        return Result.success(int(raw))
"""

from railway.assertions import ResultAssertions
from railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
)
from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]
