"""Error hierarchy for the component synchronization engine.

Every fatal error is raised before the change set is applied, so a failed
operation leaves the filesystem untouched. The one exception is the
dependency sub-plan, which is confirmed and committed on its own.
"""

from __future__ import annotations


class KindlingError(Exception):
    """Base class for all errors raised by Kindling."""


class InvalidRequirementError(KindlingError):
    """A requirement string does not follow the requirement grammar."""


class ResolutionError(KindlingError):
    """A component source could not be turned into a local directory."""


class ManifestError(KindlingError):
    """A component's kindling.yaml is malformed or does not match the request."""


class SyntaxTreeError(ManifestError):
    """A component file is not valid Python source."""


class ConflictError(KindlingError):
    """An untracked project file already exists at an import destination."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Conflicting file {path} already exists, aborting.")


class IntegrityError(KindlingError):
    """A tracked file is missing or has drifted from its recorded hash."""

    def __init__(self, component: str, path: str, reason: str):
        self.component = component
        self.path = path
        super().__init__(
            f"{path} {reason}, aborting. Run `kindling unlock {component}` "
            "to stop tracking the component before editing it."
        )


class HookError(KindlingError):
    """A component setup or upgrade hook raised."""


class DependencyInstallError(KindlingError):
    """Installing a component's dependencies failed or was declined."""


class ComponentNotInstalledError(KindlingError):
    """The component has no lock record in the host project."""

    def __init__(self, component: str):
        self.component = component
        super().__init__(
            f"{component} is not installed. You can install it with "
            f"`kindling install {component}@path:/path/to/{component}`."
        )


class AlreadyInstalledError(KindlingError):
    """The component is already tracked by the host project."""

    def __init__(self, component: str):
        self.component = component
        super().__init__(
            f"{component} is already installed. Use `kindling update {component}` instead."
        )


class DirtyWorktreeError(KindlingError):
    """The host repository has uncommitted changes."""
