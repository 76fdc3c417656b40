"""
Exceptions raised by the Lambda Updater pipeline.
"""
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from lambda_updater.lambda_func.function_updater import UpdateBatchResult


class UpdaterError(Exception):
    """Base exception class for the Lambda Updater."""

    pass


class MissingRequiredOptionError(UpdaterError):
    """Raised when a required command-line option was not given."""

    def __init__(self, missing: list, usage: str):
        self.missing = missing
        self.usage = usage
        super().__init__(f"Missing required option(s): {', '.join(missing)}. Usage: {usage}")


class UnsupportedArtifactTypeError(UpdaterError):
    """Raised when the target is neither a script nor a jar."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(
            f"Unsupported file type for {target}. Only .js and .jar are supported at the moment."
        )


class InvalidPathError(UpdaterError):
    """Raised when an artifact or archive path cannot be used."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}. Path: {path}")


class TemplateParseError(UpdaterError):
    """Raised when the CloudFormation template cannot be read or understood."""

    def __init__(self, template_path: str, reason: str):
        self.template_path = template_path
        self.reason = reason
        super().__init__(f"Failed to parse template {template_path}: {reason}")


class NoResourcesFoundError(UpdaterError):
    """Raised when no template resource matches the artifact family."""

    def __init__(self, family: str, function_name: Optional[str] = None):
        self.family = family
        self.function_name = function_name
        if function_name:
            message = f"No function(s) found for an update: {function_name} is not a {family} function in the template."
        else:
            message = f"No function(s) found for an update with a {family} runtime."
        super().__init__(message)


class InvalidRequestError(UpdaterError):
    """Raised when a request to AWS carries a value that fails validation."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid value for {field}: {value!r}")


class CommandExecutionError(UpdaterError):
    """Raised when an external call to AWS fails."""

    def __init__(self, command: str, cause: object):
        self.command = command
        self.cause = cause
        super().__init__(f'Error while executing command: "{command}": {cause}')


class UpdateFailedError(UpdaterError):
    """Raised when at least one function in a batch failed to update."""

    def __init__(self, batch: "UpdateBatchResult"):
        self.batch = batch
        failed = ", ".join(result.function_name for result in batch.failed)
        super().__init__(
            f"Failed to update {len(batch.failed)} of {len(batch.results)} function(s): {failed}"
        )
