class SfoError(Exception):
    """Base class for sfoedit errors."""


# Parsing
class ParseError(SfoError):
    pass


class BadMagicError(ParseError):
    pass


class TruncatedInputError(ParseError):
    pass


class ContainerError(SfoError):
    pass


# Mutation
class DuplicateKeyError(SfoError):
    pass


class NotFoundError(SfoError):
    pass


class ValueTooLargeError(SfoError):
    pass


class InvalidValueError(SfoError):
    pass


class AllocationError(SfoError):
    pass


# Errors that tolerate-failure mode turns into no-ops
TOLERABLE_ERRORS = (DuplicateKeyError, NotFoundError)
