""" Exceptions raised by the workflow engine. """


class WorkflowError(Exception):
    """Base class for workflow engine errors."""


class WorkflowValidationError(WorkflowError):
    """A workflow document or one of its parts is malformed."""


class DuplicateVariableNameError(WorkflowValidationError):
    def __init__(self, name: str):
        super().__init__(f"Duplicate variable name found: {name}")
        self.name = name


class InvalidVariableNameError(WorkflowValidationError):
    pass


class ToolNotFoundError(WorkflowError):
    pass


class ToolTimeoutError(WorkflowError):
    def __init__(self, tool_id: str, timeout: float):
        super().__init__(f"Tool {tool_id} timed out after {timeout}s")
        self.tool_id = tool_id
        self.timeout = timeout
