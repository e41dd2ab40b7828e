class TableError(Exception):
    """Base class for every error raised by the table engine."""


class PreconditionError(TableError):
    pass


class InvalidDirectionError(PreconditionError, ValueError):
    pass


class TableNotFoundError(PreconditionError, LookupError):
    pass


class ParseError(TableError, ValueError):
    def __init__(self, message, fragment=None):
        if fragment is not None:
            message = f"{message}: {fragment!r}"
        super().__init__(message)
        self.fragment = fragment


class RegistryContextError(ParseError):
    pass


class EvaluationError(TableError):
    pass


class EmptyInputError(TableError, ValueError):
    pass


class EmptyTableError(TableError, ValueError):
    pass


class NarrowingError(TableError):
    pass


class NarrowingInfeasibleError(NarrowingError):
    pass


class NarrowingUnavailableError(NarrowingError):
    pass


class NarrowingEngineError(NarrowingError):
    def __init__(self, message, diagnostic=""):
        text = message
        if diagnostic:
            text = f"{message}\n{diagnostic}"
        super().__init__(text)
        self.diagnostic = diagnostic
