"""Exception hierarchy for claimctl."""

from typing import Optional


class ClaimctlError(Exception):
    """Base exception for claimctl-related errors."""
    pass


class ConfigError(ClaimctlError):
    """Raised when required input is missing or configuration is invalid."""
    pass


class FilenamePatternError(ConfigError):
    """Raised when an output filename pattern cannot be expanded."""
    pass


class TemplateNotFoundError(ClaimctlError):
    """Raised when a selected template is not offered by the render service."""

    def __init__(self, names):
        self.names = list(names)
        super().__init__(f"Template not found: {', '.join(self.names)}")


class RenderServiceError(ClaimctlError):
    """Raised when the render service cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RenderError(ClaimctlError):
    """A single template failed to render. Recorded on the result, never fatal to the batch."""

    def __init__(self, template_name: str, cause: Exception):
        self.template_name = template_name
        self.cause = cause
        super().__init__(f"{template_name}: {cause}")


class GitOpsError(ClaimctlError):
    """Raised when there are Git-related issues."""
    pass


class NotAGitRepoError(GitOpsError):
    """Raised when no repository can be found above a directory."""
    pass


class NothingToCommitError(GitOpsError):
    """Raised when there are no changes to stage or commit."""
    pass


class PushError(GitOpsError):
    """Raised when the remote rejects or fails a push."""
    pass


class CredentialsMissingError(ClaimctlError):
    """Raised when an operation needs git credentials and none were resolved."""
    pass


class PRError(ClaimctlError):
    """Raised when there are pull request API-related issues."""
    pass


class PRAuthError(PRError):
    """Raised when the pull request host does not accept the configured token."""
    pass


class FilesystemError(ClaimctlError):
    """Raised when output directories or files cannot be created."""
    pass


class RegistryError(ClaimctlError):
    """Raised when a registry entry cannot be found or the registry cannot be read."""
    pass
