"""Operation result types and status enums.

Standardized result types for operations across the application, including
status enums, the result dataclass, and error classifiers for Slack and AWS
exceptions.
"""

from infrastructure.operations.classifiers import (
    classify_aws_error,
    classify_slack_error,
)
from infrastructure.operations.result import RATE_LIMITED, OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "RATE_LIMITED",
    "classify_slack_error",
    "classify_aws_error",
]
