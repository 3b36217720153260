"""Errors raised by bindbuilder.

Every failure is fatal to the pipeline; nothing here is retried.
"""


class BindBuilderError(Exception):
    """Base error carrying an optional hint and the external tool's output."""

    def __init__(self, message, hint=None, output=None):
        super().__init__(message)
        self.hint = hint
        self.output = output

    def __str__(self):
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.output:
            parts.append(f"Output:\n{self.output.rstrip()}")
        return "\n".join(parts)


class ConfigError(BindBuilderError):
    pass


class PathNotFound(BindBuilderError):
    pass


class UnsupportedPlatform(BindBuilderError):
    pass


class VcsToolMissing(BindBuilderError):
    pass


class VcsOperationFailed(BindBuilderError):
    pass


class DownloadFailed(BindBuilderError):
    pass


class BuildToolMissing(BindBuilderError):
    pass


class BuildFailed(BindBuilderError):
    pass


class InstallFailed(BindBuilderError):
    pass


class MalformedBuildPath(BindBuilderError):
    pass


class NoLinkableTargets(BindBuilderError):
    pass


class MissingSharedObject(BindBuilderError):
    pass
