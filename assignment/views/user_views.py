import structlog
from rest_framework.decorators import api_view
from rest_framework.exceptions import ParseError
from rest_framework.response import Response

from ..errors import DomainError, ErrorCode
from ..serializers import PullRequestShortSerializer, SetIsActiveRequestSerializer, UserSerializer
from ..services import UserService
from .errors import domain_error_response, error_response, internal_error_response, invalid_input_response

logger = structlog.get_logger(__name__)


@api_view(['POST'])
def user_set_active(request):
    """POST /users/setIsActive - Установить флаг активности пользователя"""
    try:
        request_serializer = SetIsActiveRequestSerializer(data=request.data)
        if not request_serializer.is_valid():
            return invalid_input_response(request_serializer.errors)
        data = request_serializer.validated_data

        user = UserService.set_user_active_status(data['user_id'], data['is_active'])
        serializer = UserSerializer(user)

        return Response({
            'user': serializer.data
        })

    except DomainError as e:
        return domain_error_response(e)
    except ParseError as e:
        return invalid_input_response({'body': str(e.detail)})
    except Exception:
        logger.exception('set user activity failed')
        return internal_error_response()


@api_view(['GET'])
def users_get_review(request):
    """GET /users/getReview - Получить PR'ы, где пользователь назначен ревьювером"""
    try:
        user_id = request.query_params.get('user_id')

        if not user_id:
            return error_response(ErrorCode.INVALID_INPUT, 'user_id parameter is required')

        assigned_prs = UserService.get_user_review_assignments(user_id)
        serializer = PullRequestShortSerializer(assigned_prs, many=True)

        return Response({
            'user_id': user_id,
            'pull_requests': serializer.data
        })

    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        logger.exception('get user reviews failed')
        return internal_error_response()
