import structlog
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.exceptions import ParseError
from rest_framework.response import Response

from ..errors import DomainError, ErrorCode
from ..serializers import (
    AddTeamRequestSerializer,
    DeactivateMembersRequestSerializer,
    DeactivationSerializer,
    TeamSerializer,
)
from ..services import TeamService
from .errors import domain_error_response, error_response, internal_error_response, invalid_input_response

logger = structlog.get_logger(__name__)


@api_view(['POST'])
def team_add(request):
    """POST /team/add - Создать команду с участниками"""
    try:
        request_serializer = AddTeamRequestSerializer(data=request.data)
        if not request_serializer.is_valid():
            return invalid_input_response(request_serializer.errors)
        data = request_serializer.validated_data

        team = TeamService.create_team_with_members(data['team_name'], data['members'])
        serializer = TeamSerializer(team)

        return Response({
            'team': serializer.data
        }, status=status.HTTP_201_CREATED)

    except DomainError as e:
        return domain_error_response(e)
    except ParseError as e:
        return invalid_input_response({'body': str(e.detail)})
    except Exception:
        logger.exception('add team failed')
        return internal_error_response()


@api_view(['GET'])
def team_get(request):
    """GET /team/get - Получить команду с участниками"""
    try:
        team_name = request.query_params.get('team_name')

        if not team_name:
            return error_response(ErrorCode.INVALID_INPUT, 'team_name parameter is required')

        team = TeamService.get_team_with_members(team_name)
        serializer = TeamSerializer(team)

        return Response(serializer.data)

    except DomainError as e:
        return domain_error_response(e)
    except Exception:
        logger.exception('get team failed')
        return internal_error_response()


@api_view(['POST'])
def team_deactivate_members(request):
    """POST /team/deactivateMembers - Массово деактивировать участников команды"""
    try:
        request_serializer = DeactivateMembersRequestSerializer(data=request.data)
        if not request_serializer.is_valid():
            return invalid_input_response(request_serializer.errors)
        data = request_serializer.validated_data

        result = TeamService.deactivate_members(data['team_name'], data['user_ids'])

        return Response(DeactivationSerializer(result).data)

    except DomainError as e:
        return domain_error_response(e)
    except ParseError as e:
        return invalid_input_response({'body': str(e.detail)})
    except Exception:
        logger.exception('deactivate team members failed')
        return internal_error_response()
