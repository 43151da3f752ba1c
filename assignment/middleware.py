import time
import uuid

import structlog
from django.conf import settings

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = 'X-Request-ID'


class RequestContextMiddleware:
    """
    Проставляет request id и пишет access-лог

    Request id берется из заголовка ``X-Request-ID`` или генерируется,
    попадает во все записи лога этого запроса и возвращается в ответе.

    Запросы дольше ``REQUEST_TIMEOUT_MS`` логируются как warning уже после
    ответа: middleware ничего не прерывает. Прервать работу может только
    ``statement_timeout`` PostgreSQL, и он ограничивает каждый SQL-запрос
    отдельно, а не весь HTTP-запрос. Отмененный запрос к БД отдается как
    INTERNAL_ERROR (500). На SQLite ограничения нет.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.timeout_ms = getattr(settings, 'REQUEST_TIMEOUT_MS', 500)

    def __call__(self, request):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.monotonic()
        response = self.get_response(request)
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        response[REQUEST_ID_HEADER] = request_id

        log = logger.warning if duration_ms > self.timeout_ms else logger.info
        log(
            'http request',
            method=request.method,
            path=request.path,
            remote_addr=request.META.get('REMOTE_ADDR'),
            status=response.status_code,
            duration_ms=duration_ms,
        )

        structlog.contextvars.clear_contextvars()
        return response
