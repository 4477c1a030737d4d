class LogContextError(Exception):
    """Base class for errors raised by the logging context machinery."""


class ExpressionEvaluationError(LogContextError):
    """Raised when a context expression cannot be evaluated."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Failed to evaluate expression '{expression}': {reason}")
