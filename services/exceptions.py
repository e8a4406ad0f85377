"""
Exceptions raised by service collaborators.
"""


class DependencyUnavailableError(Exception):
    """A collaborator (registry, reward config, map pool) could not be reached."""

    def __init__(self, dependency: str, message: str = ""):
        self.dependency = dependency
        super().__init__(message or f"{dependency} is unavailable")
