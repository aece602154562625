"""Exception types raised by promptreg."""

from pathlib import Path


class PromptRegError(Exception):
    """Base class for all promptreg errors."""


class ConfigError(PromptRegError):
    """Error loading or parsing configuration."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class LockfileCorruptError(ConfigError):
    """The lockfile exists but cannot be parsed.

    Never treated as "no lockfile": recreating it would discard every
    repository-scope installation record.
    """


class NotFoundError(PromptRegError):
    """A bundle, manifest, or source could not be found."""

    def __init__(self, message: str, bundle_id: str | None = None):
        self.bundle_id = bundle_id
        super().__init__(message)


class InstallError(PromptRegError):
    """Error during bundle installation."""

    def __init__(self, message: str, bundle_id: str | None = None):
        self.bundle_id = bundle_id
        super().__init__(message)


class PartialInstallError(InstallError):
    """A copy failed midway; every file written so far has been rolled back."""

    def __init__(self, bundle_id: str, cause: BaseException):
        self.cause = cause
        super().__init__(
            f"Installation of {bundle_id} failed and was rolled back: {cause}",
            bundle_id,
        )


class PartialMigrationError(PromptRegError):
    """A scope migration committed one half and failed the other."""

    def __init__(self, bundle_id: str, completed: str, failed: str, cause: BaseException):
        self.bundle_id = bundle_id
        self.completed = completed
        self.failed = failed
        self.cause = cause
        super().__init__(
            f"Migration of {bundle_id} is partially applied: {completed} succeeded but "
            f"{failed} failed ({cause}). Manual intervention may be needed; "
            f"reinstall {bundle_id} at the intended scope."
        )


class GitExcludeWriteError(PromptRegError):
    """Updating .git/info/exclude failed. Always downgraded to a warning."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class ScopeConflictError(PromptRegError):
    """The bundle is already installed at a different scope."""

    def __init__(self, bundle_id: str, existing_scope: str, requested_scope: str):
        self.bundle_id = bundle_id
        self.existing_scope = existing_scope
        self.requested_scope = requested_scope
        super().__init__(
            f"{bundle_id} is already installed at {existing_scope} scope; "
            f"move it instead of installing it again at {requested_scope} scope"
        )
