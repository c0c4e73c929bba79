"""Errors raised while computing a build order."""

from typing import Optional, Sequence


class DependencyOrderError(Exception):
    """Base class for every fatal condition of a build-order computation."""


class ConfigError(DependencyOrderError):
    """A configuration value is outside its accepted range."""

    def __init__(self, parameter: str, value, accepted: Optional[Sequence] = None):
        self.parameter = parameter
        self.value = value
        self.accepted = accepted
        message = f"The variable {parameter} value <{value}> is invalid"
        if accepted:
            message += f" (accepted: {', '.join(str(a) for a in accepted)})"
        super().__init__(message)


class MalformedSourceError(DependencyOrderError):
    """Dependency metadata could not be read or parsed."""

    def __init__(self, message: str, package_id: Optional[str] = None, location: Optional[str] = None):
        self.package_id = package_id
        self.location = location
        details = []
        if package_id:
            details.append(f"package={package_id}")
        if location:
            details.append(f"at {location}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class OrphanReferenceError(DependencyOrderError):
    """No node sits at the path where a parent was expected."""

    def __init__(self, node_id: str, parent_path):
        self.node_id = node_id
        self.parent_path = tuple(parent_path)
        super().__init__(
            f"No parent node found at path {list(self.parent_path)} for {node_id}"
        )


class UnresolvableCycleError(DependencyOrderError):
    """A backtrack reached the root, or rewiring did not converge."""


class DuplicateRemovalMismatchError(DependencyOrderError):
    """More edges were marked for pruning than the edge list holds."""

    def __init__(self, node_id: str, dep_id: str, expected: int, found: int):
        self.node_id = node_id
        self.dep_id = dep_id
        super().__init__(
            f"Cannot remove {expected} occurrence(s) of {dep_id} from {node_id}: "
            f"only {found} found"
        )
