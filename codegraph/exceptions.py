class CodeGraphError(Exception):
    """Base class for code graph errors."""


class SourceParseError(CodeGraphError, ValueError):
    """Raised when source code cannot be parsed into graph facts."""

    def __init__(self, module_name: str, message: str, line: int = 0):
        self.module_name = module_name
        self.line = line
        super().__init__(f"{module_name}:{line}: {message}")
