"""
Ошибки сервиса назначения ревьюверов.

Два уровня:

* ``StoreError`` - ошибка хранилища, уже классифицированная по виду
  (``StoreErrorKind``). Её бросает только ``assignment.store``.
* ``DomainError`` - ошибка бизнес-правил со стабильным кодом ``ErrorCode``.
  Её бросает сервисный слой, транспорт отображает код в HTTP-статус.
"""

from enum import Enum

from django.core.exceptions import ObjectDoesNotExist
from django.db import DataError, IntegrityError


class ErrorCode(str, Enum):
    NOT_FOUND = 'NOT_FOUND'
    TEAM_EXISTS = 'TEAM_EXISTS'
    PR_EXISTS = 'PR_EXISTS'
    PR_MERGED = 'PR_MERGED'
    NOT_ASSIGNED = 'NOT_ASSIGNED'
    NO_CANDIDATE = 'NO_CANDIDATE'
    INVALID_INPUT = 'INVALID_INPUT'
    INTERNAL_ERROR = 'INTERNAL_ERROR'


DEFAULT_MESSAGES = {
    ErrorCode.NOT_FOUND: 'resource not found',
    ErrorCode.TEAM_EXISTS: 'team_name already exists',
    ErrorCode.PR_EXISTS: 'PR id already exists',
    ErrorCode.PR_MERGED: 'cannot reassign on merged PR',
    ErrorCode.NOT_ASSIGNED: 'reviewer is not assigned to this PR',
    ErrorCode.NO_CANDIDATE: 'no active replacement candidate in team',
    ErrorCode.INVALID_INPUT: 'invalid input',
    ErrorCode.INTERNAL_ERROR: 'internal server error',
}


class DomainError(Exception):
    def __init__(self, code: ErrorCode, message: str = None):
        self.code = code
        self.message = message or DEFAULT_MESSAGES[code]
        super().__init__(self.message)

    def __repr__(self):
        return f"{type(self).__name__}({self.code.value}, {self.message!r})"


class NoActiveReviewer(DomainError):
    """В пуле кандидатов не осталось ни одного активного пользователя."""

    def __init__(self, message: str = 'no active reviewer available'):
        super().__init__(ErrorCode.NO_CANDIDATE, message)


class StoreErrorKind(str, Enum):
    NOT_FOUND = 'NOT_FOUND'
    ALREADY_EXISTS = 'ALREADY_EXISTS'
    INVALID_INPUT = 'INVALID_INPUT'
    INTERNAL = 'INTERNAL'


class StoreError(Exception):
    """
    Ошибка хранилища.

    ``entity`` говорит, какая сущность не нашлась или конфликтует
    (``'pull_request'``, ``'user'``, ``'team_membership'``,
    ``'reviewer_assignment'``, ``'team'``), чтобы сервис мог выбрать
    конкретный доменный код.
    """

    def __init__(self, kind: StoreErrorKind, entity: str = None, message: str = None):
        self.kind = kind
        self.entity = entity
        self.message = message or kind.value.lower().replace('_', ' ')
        super().__init__(self.message)


# SQLSTATE PostgreSQL
UNIQUE_VIOLATION = '23505'
INVALID_INPUT_SQLSTATES = {
    '23503',  # foreign_key_violation
    '23502',  # not_null_violation
    '23514',  # check_violation
}

SQLITE_INVALID_INPUT_MARKERS = (
    'FOREIGN KEY constraint failed',
    'NOT NULL constraint failed',
    'CHECK constraint failed',
)


def _sqlstate(exc: BaseException):
    cause = exc.__cause__
    # psycopg 3 - sqlstate, psycopg2 - pgcode
    return getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)


def classify_db_error(exc: BaseException, entity: str = None) -> StoreError:
    """
    Переводит исключение Django/драйвера БД в ``StoreError``.

    Чистая функция: ничего не логирует и не откатывает, только
    классифицирует. Неизвестные ошибки становятся ``INTERNAL``.
    """
    if isinstance(exc, StoreError):
        return exc

    if isinstance(exc, ObjectDoesNotExist):
        return StoreError(StoreErrorKind.NOT_FOUND, entity, str(exc) or None)

    if isinstance(exc, IntegrityError):
        code = _sqlstate(exc)
        text = str(exc)
        if code == UNIQUE_VIOLATION or 'UNIQUE constraint failed' in text:
            return StoreError(StoreErrorKind.ALREADY_EXISTS, entity, text)
        if code in INVALID_INPUT_SQLSTATES or any(m in text for m in SQLITE_INVALID_INPUT_MARKERS):
            return StoreError(StoreErrorKind.INVALID_INPUT, entity, text)
        return StoreError(StoreErrorKind.INTERNAL, entity, text)

    if isinstance(exc, DataError):
        return StoreError(StoreErrorKind.INVALID_INPUT, entity, str(exc))

    return StoreError(StoreErrorKind.INTERNAL, entity, str(exc) or type(exc).__name__)
