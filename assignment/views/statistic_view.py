import structlog
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..serializers import StatsSerializer
from ..services import StatsService
from .errors import internal_error_response

logger = structlog.get_logger(__name__)


@api_view(['GET'])
def stats_overview(request):
    """
    GET /statistic - Общая статистика назначений
    """
    try:
        stats = StatsService.get_review_stats()
        serializer = StatsSerializer(stats)
        return Response(serializer.data)

    except Exception:
        logger.exception('get statistics failed')
        return internal_error_response()
