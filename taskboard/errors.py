"""Domain exceptions shared by the service layer.

- ValidationError: bad or missing input, raised before anything is written.
- PermissionDenied: the actor's role or ownership does not allow the operation.
- NotFoundError: a referenced entity does not exist (or, for boards, is not
  visible to the actor; the two are reported the same way).
- LLMServiceError: the language-model backend failed, timed out or returned
  something that is not a completion.

Outcomes of individual chat actions never raise; see action_executor.
"""


class TaskboardError(Exception):
    """Base class for every error raised deliberately by taskboard."""


class ValidationError(TaskboardError, ValueError):
    pass


class PermissionDenied(TaskboardError):
    pass


class NotFoundError(TaskboardError, LookupError):
    pass


class LLMServiceError(TaskboardError):
    pass
