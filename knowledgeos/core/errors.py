"""
Knowledge Store Errors

Custom exceptions for the knowledge store, version log and rule engine.
"""

from typing import Optional


class KnowledgeError(Exception):
    """
    Base exception for knowledge subsystem errors

    Carries a human readable message plus optional keyword context that is
    rendered into the string form, so CLI callers can print the error as-is.
    """

    def __init__(self, message: str, **kwargs):
        """
        Initialize KnowledgeError

        Args:
            message: Error message
            **kwargs: Additional error context
        """
        self.message = message
        self.context = kwargs
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context"""
        parts = [self.message]
        context = {k: v for k, v in self.context.items() if v is not None}
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            parts.append(f"[{context_str}]")
        return " ".join(parts)


class NotFoundError(KnowledgeError):
    """Raised when a topic, manifest record or rule does not exist"""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class AlreadyExistsError(KnowledgeError):
    """Raised when adding a topic that is already present"""

    def __init__(self, topic: str, reason: Optional[str] = None):
        self.topic = topic
        super().__init__(f"knowledge already exists: {topic}", reason=reason)


class MalformedDocumentError(KnowledgeError):
    """Raised when a stored document cannot be decoded"""

    def __init__(self, reason: str, path: Optional[str] = None):
        self.reason = reason
        super().__init__(f"malformed document: {reason}", path=path)


class RuleValidationError(KnowledgeError):
    """Base class for rule validation failures"""
    pass


class InvalidRuleTypeError(RuleValidationError):
    """Raised when a rule type is not one of the supported types"""

    def __init__(self, rule_type: str):
        self.rule_type = rule_type
        super().__init__(f"invalid rule type: {rule_type}")


class EmptyPatternError(RuleValidationError):
    """Raised when a rule has no pattern"""

    def __init__(self):
        super().__init__("pattern cannot be empty")


class InvalidPatternError(RuleValidationError):
    """
    Raised when a rule pattern is not a valid regular expression

    Also raised by RuleEngine.apply() when a stored rule fails to compile;
    rule_id then identifies the offending rule.
    """

    def __init__(self, pattern: str, detail: str, rule_id: Optional[str] = None):
        self.pattern = pattern
        self.rule_id = rule_id
        super().__init__(
            f"invalid regex pattern {pattern!r}: {detail}",
            rule_id=rule_id,
        )


class MissingReplacementError(RuleValidationError):
    """Raised when a prefer rule has no replacement"""

    def __init__(self):
        super().__init__("prefer rule requires replacement")


class VersionLogFailure(KnowledgeError):
    """
    Raised when the version-control tool exits with a non-zero status

    The captured tool output is kept on the exception for display.
    """

    def __init__(
        self,
        command: str,
        output: str = "",
        status: Optional[int] = None,
    ):
        self.command = command
        self.output = output
        self.status = status
        message = f"version log command failed: {command}"
        if output:
            message += f": {output.strip()}"
        super().__init__(message, status=status)


class EmptyResultError(KnowledgeError):
    """Raised when auto-learning from a missing or empty research result"""

    def __init__(self):
        super().__init__("research result is empty or nil")
