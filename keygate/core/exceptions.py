class KeygateError(Exception):
    """Base class for errors raised by keygate services."""


class AuthorizationDenied(KeygateError):
    """Caller is not allowed to perform the operation. Nothing was changed."""

    def __init__(self, reason: str = "unauthorized") -> None:
        super().__init__(reason)
        self.reason = reason


class UnknownTemplate(KeygateError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown post template: {name}")
        self.name = name


class KickIncomplete(KeygateError):
    """The member was banned but lifting the ban failed; they stay banned."""

    def __init__(self, user_id: int, detail: str) -> None:
        super().__init__(f"user {user_id} removed but still banned: {detail}")
        self.user_id = user_id
        self.detail = detail
