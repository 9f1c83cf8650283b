class SelfgateError(Exception):
    """Base class for errors raised by selfgate collaborators."""


class VerifierError(SelfgateError):
    """The external proof verifier could not be reached or answered badly."""


class LinkBuildError(SelfgateError):
    pass


class PlatformNotReady(SelfgateError):
    """The chat client is not logged in yet (or has been closed)."""


class RoleNotFound(SelfgateError):
    def __init__(self, origin_id: str, role_id: str):
        super().__init__(f"role {role_id} not found in guild {origin_id}")
        self.origin_id = origin_id
        self.role_id = role_id
