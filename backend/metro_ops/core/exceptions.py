"""Typed failures raised by the service layer.

Routers never build HTTP errors for these themselves; ``main.py`` registers a
single handler that turns each kind into its status code.
"""


class WorkflowError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(WorkflowError):
    status_code = 404


class Forbidden(WorkflowError):
    status_code = 403


class Conflict(WorkflowError):
    status_code = 409


class ValidationFailure(WorkflowError):
    status_code = 400


class PersistenceFailure(WorkflowError):
    status_code = 500
