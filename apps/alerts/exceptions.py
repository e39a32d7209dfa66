"""Errors raised while evaluating alert rules."""


class EvaluationError(Exception):
    """A rule's metric could not be computed (e.g. no build history)."""

    def __init__(self, condition_type: str, reason: str):
        self.condition_type = condition_type
        self.reason = reason
        super().__init__(f"{condition_type}: {reason}")
