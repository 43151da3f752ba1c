from rest_framework import status
from rest_framework.response import Response

from ..errors import DomainError, ErrorCode

HTTP_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TEAM_EXISTS: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PR_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.PR_MERGED: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_ASSIGNED: status.HTTP_409_CONFLICT,
    ErrorCode.NO_CANDIDATE: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(code: ErrorCode, message: str) -> Response:
    return Response({
        'error': {
            'code': code.value,
            'message': message
        }
    }, status=HTTP_STATUS_BY_CODE[code])


def domain_error_response(exc: DomainError) -> Response:
    return error_response(exc.code, exc.message)


def _first_message(detail):
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _first_message(value)
            if message:
                return f"{key}: {message}"
    elif isinstance(detail, list):
        for item in detail:
            message = _first_message(item)
            if message:
                return message
    elif detail:
        return str(detail)
    return None


def invalid_input_response(errors) -> Response:
    """Ошибки валидации DRF-сериализатора -> INVALID_INPUT"""
    return error_response(ErrorCode.INVALID_INPUT, _first_message(errors) or 'invalid input')


def internal_error_response() -> Response:
    return error_response(ErrorCode.INTERNAL_ERROR, 'Internal server error')
