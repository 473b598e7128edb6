"""Operations layer: job use-cases shared by the API and the CLI."""

from distcron.ops.context import OperationContext
from distcron.ops.result import OperationError, OperationResult, start_timer

__all__ = ["OperationContext", "OperationError", "OperationResult", "start_timer"]
