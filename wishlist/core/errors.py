class ApiError(Exception):
    def __init__(self, code: str, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status


class RepositoryFailure(Exception):
    """A storage write failed. ``operation`` is one of add, update, delete."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"Failed to {operation} wish")
        self.operation = operation
        self.cause = cause
