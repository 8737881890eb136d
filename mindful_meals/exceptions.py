import logging

from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class MindfulMealsError(Exception):
    pass


class NotFoundError(MindfulMealsError):
    pass


class InsufficientQuantityError(MindfulMealsError):
    pass


class ConstraintViolationError(MindfulMealsError):
    """A write was rejected by a database constraint."""

    def __init__(self, message, constraint=None):
        super().__init__(message)
        self.constraint = constraint


class DuplicateKeyError(ConstraintViolationError):
    pass


class ForeignKeyViolationError(ConstraintViolationError):
    pass


class CheckViolationError(ConstraintViolationError):
    pass


class NotNullViolationError(ConstraintViolationError):
    pass


# postgres SQLSTATE codes
_SQLSTATE = {
    "23505": DuplicateKeyError,
    "23503": ForeignKeyViolationError,
    "23514": CheckViolationError,
    "23502": NotNullViolationError,
}

# mysql error numbers
_MYSQL_ERRNO = {
    1062: DuplicateKeyError,
    1216: ForeignKeyViolationError,
    1451: ForeignKeyViolationError,
    1452: ForeignKeyViolationError,
    3819: CheckViolationError,
    1048: NotNullViolationError,
}

# message fragments, sqlite and fallback
_MESSAGES = (
    ("unique constraint", DuplicateKeyError),
    ("duplicate", DuplicateKeyError),
    ("foreign key constraint", ForeignKeyViolationError),
    ("check constraint", CheckViolationError),
    ("not null constraint", NotNullViolationError),
)


def classify_integrity_error(error: IntegrityError):
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _SQLSTATE:
        return _SQLSTATE[sqlstate]
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int) and args[0] in _MYSQL_ERRNO:
        return _MYSQL_ERRNO[args[0]]
    message = str(orig).lower()
    for fragment, error_class in _MESSAGES:
        if fragment in message:
            return error_class
    return ConstraintViolationError


def translate_integrity_error(error: IntegrityError) -> ConstraintViolationError:
    error_class = classify_integrity_error(error)
    detail = str(error.orig)
    logger.error(f"{error_class.__name__}: {detail}")
    return error_class(detail, constraint=getattr(getattr(error.orig, "diag", None), "constraint_name", None))
