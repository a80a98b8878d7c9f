class PatternCompilationError(ValueError):
    """An include/exclude pattern could not be compiled."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Failed to parse pattern '{pattern}': {reason}")
        self.pattern = pattern
        self.reason = reason


class MissingOriginalRequestError(LookupError):
    """No original request could be resolved for a task at logging time."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} has no original request")
        self.task_id = task_id
