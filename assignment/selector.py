import random

from .errors import NoActiveReviewer


class ReviewerSelector:
    """
    Случайный выбор ревьюверов из пула кандидатов.

    Источник случайности передается снаружи, чтобы тесты могли
    зафиксировать seed. Ни ввода-вывода, ни обращений к БД.
    """

    def __init__(self, rng: random.Random = None):
        self._rng = rng or random.Random()

    def select(self, candidates, excluded, count: int) -> list:
        """
        Выбирает до ``count`` ревьюверов

        Args:
            candidates: пользователи с атрибутами ``id`` и ``is_active``
            excluded: id, которые нельзя назначать (автор, заменяемый ревьювер)
            count: сколько ревьюверов нужно

        Returns:
            list: id выбранных ревьюверов, не больше ``count``

        Raises:
            NoActiveReviewer: Если после фильтрации никого не осталось
        """
        excluded = set(excluded)
        pool = list(dict.fromkeys(
            candidate.id for candidate in candidates
            if candidate is not None and candidate.is_active and candidate.id not in excluded
        ))

        if not pool:
            raise NoActiveReviewer()

        self._rng.shuffle(pool)
        return pool[:max(count, 0)]
