# distaudit/errors.py
from __future__ import annotations


class AuditError(Exception):
    """Base class for everything the auditor raises on purpose."""


class MissingBuildOutput(AuditError):
    def __init__(self, root):
        self.root = root
        super().__init__(f"Build directory not found: {root}. Run the site build first.")


class ConfigError(AuditError):
    pass


class UnknownBudget(AuditError, KeyError):
    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Unknown budget category: {category!r}")

    def __str__(self) -> str:
        return self.args[0]


class RuleCheckFailure(AuditError):
    def __init__(self, rule_id: str, cause: BaseException):
        self.rule_id = rule_id
        self.cause = cause
        super().__init__(f"Check {rule_id} could not complete: {type(cause).__name__}: {cause}")


class ReportWriteFailure(AuditError):
    def __init__(self, path, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Could not write report {path}: {cause}")


class UnknownPlatform(AuditError):
    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"Unknown platform: {platform}")


class UnreadableBuildOutput(AuditError):
    def __init__(self, root, cause: BaseException):
        self.root = root
        self.cause = cause
        super().__init__(f"Build directory cannot be read: {root}: {cause}")
