import structlog
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.exceptions import ParseError
from rest_framework.response import Response

from ..errors import DomainError
from ..serializers import (
    CreatePullRequestRequestSerializer,
    MergePullRequestRequestSerializer,
    PullRequestSerializer,
    ReassignRequestSerializer,
)
from ..services import PrLifecycleService
from .errors import domain_error_response, internal_error_response, invalid_input_response

logger = structlog.get_logger(__name__)


@api_view(['POST'])
def pullrequest_create(request):
    """POST /pullRequest/create - Создать PR"""
    try:
        request_serializer = CreatePullRequestRequestSerializer(data=request.data)
        if not request_serializer.is_valid():
            return invalid_input_response(request_serializer.errors)
        data = request_serializer.validated_data

        pr = PrLifecycleService().create_pull_request(
            data['pull_request_id'], data['pull_request_name'], data['author_id']
        )

        return Response({
            'pr': PullRequestSerializer(pr).data
        }, status=status.HTTP_201_CREATED)

    except DomainError as e:
        logger.warning('create PR rejected', code=e.code.value, error=e.message)
        return domain_error_response(e)
    except ParseError as e:
        return invalid_input_response({'body': str(e.detail)})
    except Exception:
        logger.exception('create PR failed')
        return internal_error_response()


@api_view(['POST'])
def pullrequest_merge(request):
    """POST /pullRequest/merge - Пометить PR как MERGED"""
    try:
        request_serializer = MergePullRequestRequestSerializer(data=request.data)
        if not request_serializer.is_valid():
            return invalid_input_response(request_serializer.errors)

        pr = PrLifecycleService().merge_pull_request(request_serializer.validated_data['pull_request_id'])

        return Response({
            'pr': PullRequestSerializer(pr).data
        })

    except DomainError as e:
        logger.warning('merge PR rejected', code=e.code.value, error=e.message)
        return domain_error_response(e)
    except ParseError as e:
        return invalid_input_response({'body': str(e.detail)})
    except Exception:
        logger.exception('merge PR failed')
        return internal_error_response()


@api_view(['POST'])
def pullrequest_reassign(request):
    """POST /pullRequest/reassign - Переназначить ревьювера"""
    try:
        request_serializer = ReassignRequestSerializer(data=request.data)
        if not request_serializer.is_valid():
            return invalid_input_response(request_serializer.errors)
        data = request_serializer.validated_data

        result = PrLifecycleService().reassign_reviewer(data['pull_request_id'], data['old_user_id'])

        return Response({
            'pr': PullRequestSerializer(result.pr).data,
            'replaced_by': result.replaced_by
        })

    except DomainError as e:
        logger.warning('reassign rejected', code=e.code.value, error=e.message)
        return domain_error_response(e)
    except ParseError as e:
        return invalid_input_response({'body': str(e.detail)})
    except Exception:
        logger.exception('reassign failed')
        return internal_error_response()
