"""
Хранилище Pull Request'ов.

Единственный модуль ядра, который ходит в БД. Каждая публичная операция -
одна транзакция ``transaction.atomic()``: любая ошибка внутри откатывает
все изменения, наружу уходит уже классифицированный ``StoreError``.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Protocol

import structlog
from django.core.exceptions import ObjectDoesNotExist
from django.db import DatabaseError, transaction
from django.utils import timezone

from .errors import StoreError, StoreErrorKind, classify_db_error
from .models import PullRequest, ReviewerAssignment, TeamMembership, User

logger = structlog.get_logger(__name__)


@dataclass
class PullRequestRecord:
    id: str
    name: str
    author_id: str
    status: str
    created_at: datetime
    merged_at: Optional[datetime] = None
    assigned_reviewers: list = field(default_factory=list)


@dataclass
class ReassignResult:
    pr: PullRequestRecord
    replaced_by: str


class PrStore(Protocol):
    def select_candidates(self, user_id: str) -> list: ...

    def create(self, pr_id: str, name: str, author_id: str, reviewer_ids: list) -> PullRequestRecord: ...

    def merge(self, pr_id: str) -> PullRequestRecord: ...

    def reassign(
        self,
        pr_id: str,
        old_reviewer_id: str,
        pick_replacement: Callable[[PullRequestRecord], str],
    ) -> ReassignResult: ...

    def get(self, pr_id: str) -> PullRequestRecord: ...


@contextmanager
def _atomic(operation: str, entity: str, **context):
    try:
        with transaction.atomic():
            yield
    except (DatabaseError, ObjectDoesNotExist) as exc:
        logger.error(f"{operation} failed", error=str(exc), **context)
        raise classify_db_error(exc, entity) from exc


def _read_reviewers(pr_id: str) -> list:
    return list(
        ReviewerAssignment.objects
        .filter(pull_request_id=pr_id)
        .order_by('id')
        .values_list('user_id', flat=True)
    )


def _to_record(pr: PullRequest) -> PullRequestRecord:
    return PullRequestRecord(
        id=pr.id,
        name=pr.name,
        author_id=pr.author_id,
        status=pr.status,
        created_at=pr.created_at,
        merged_at=pr.merged_at,
        assigned_reviewers=_read_reviewers(pr.id),
    )


class DjangoPrStore:
    """Реализация ``PrStore`` поверх Django ORM."""

    def select_candidates(self, user_id: str) -> list:
        """
        Возвращает всех участников команды пользователя, включая его самого
        и неактивных. Фильтрация - забота ``ReviewerSelector``.
        """
        logger.debug('select potential reviewers', user_id=user_id)

        try:
            membership = (
                TeamMembership.objects
                .filter(user_id=user_id)
                .order_by('-joined_at')
                .first()
            )
            if membership is None:
                if not User.objects.filter(id=user_id).exists():
                    raise StoreError(StoreErrorKind.NOT_FOUND, 'user', f"user '{user_id}' not found")
                raise StoreError(StoreErrorKind.NOT_FOUND, 'team_membership', f"user '{user_id}' has no team")

            members = list(
                User.objects
                .filter(memberships__team_id=membership.team_id)
                .order_by('id')
            )
        except DatabaseError as exc:
            logger.error('failed to load team members', user_id=user_id, error=str(exc))
            raise classify_db_error(exc, 'team_membership') from exc

        logger.debug('potential reviewers loaded', team_id=membership.team_id, members=len(members))
        return members

    def create(self, pr_id: str, name: str, author_id: str, reviewer_ids: list) -> PullRequestRecord:
        reviewer_ids = list(dict.fromkeys(reviewer_ids))
        if author_id in reviewer_ids:
            raise StoreError(StoreErrorKind.INVALID_INPUT, 'reviewer_assignment', 'author cannot review own PR')

        logger.info('create PR started', pr_id=pr_id, author_id=author_id,
                    reviewers_requested=len(reviewer_ids))

        with _atomic('create PR', 'pull_request', pr_id=pr_id, author_id=author_id):
            pr = PullRequest.objects.create(id=pr_id, name=name, author_id=author_id)
            for reviewer_id in reviewer_ids:
                ReviewerAssignment.objects.create(pull_request=pr, user_id=reviewer_id)
            record = _to_record(pr)

        logger.info('PR created', pr_id=record.id, assigned_reviewers=len(record.assigned_reviewers))
        return record

    def merge(self, pr_id: str) -> PullRequestRecord:
        logger.info('merge PR started', pr_id=pr_id)

        with _atomic('merge PR', 'pull_request', pr_id=pr_id):
            # Условный UPDATE: из двух параллельных merge статус меняет только один
            updated = (
                PullRequest.objects
                .filter(id=pr_id)
                .exclude(status=PullRequest.Status.MERGED)
                .update(status=PullRequest.Status.MERGED, merged_at=timezone.now())
            )
            record = _to_record(PullRequest.objects.get(id=pr_id))

        if updated:
            logger.info('PR merged', pr_id=record.id, merged_at=record.merged_at.isoformat())
        else:
            logger.info('PR already merged', pr_id=record.id)
        return record

    def reassign(self, pr_id: str, old_reviewer_id: str, pick_replacement) -> ReassignResult:
        """
        Заменяет одного ревьювера другим

        Строка PR блокируется (SELECT ... FOR UPDATE) до конца транзакции,
        поэтому переназначения одного PR выполняются строго по очереди.
        ``pick_replacement`` получает текущее состояние PR под блокировкой
        и возвращает id нового ревьювера либо бросает ``DomainError``.
        """
        logger.info('reassign reviewer started', pr_id=pr_id, old_reviewer_id=old_reviewer_id)

        with _atomic('reassign reviewer', 'pull_request', pr_id=pr_id, old_reviewer_id=old_reviewer_id):
            pr = PullRequest.objects.select_for_update().get(id=pr_id)
            new_reviewer_id = pick_replacement(_to_record(pr))

            deleted, _ = (
                ReviewerAssignment.objects
                .filter(pull_request_id=pr.id, user_id=old_reviewer_id)
                .delete()
            )
            if not deleted:
                logger.warning('old reviewer not found on PR', pr_id=pr_id, old_reviewer_id=old_reviewer_id)
                raise StoreError(
                    StoreErrorKind.NOT_FOUND,
                    'reviewer_assignment',
                    f"reviewer '{old_reviewer_id}' is not assigned to PR '{pr_id}'",
                )

            ReviewerAssignment.objects.create(pull_request_id=pr.id, user_id=new_reviewer_id)
            record = _to_record(pr)

        logger.info('reviewer reassigned', pr_id=record.id,
                    assigned_reviewers=record.assigned_reviewers, replaced_by=new_reviewer_id)
        return ReassignResult(pr=record, replaced_by=new_reviewer_id)

    def get(self, pr_id: str) -> PullRequestRecord:
        try:
            return _to_record(PullRequest.objects.get(id=pr_id))
        except (DatabaseError, ObjectDoesNotExist) as exc:
            raise classify_db_error(exc, 'pull_request') from exc
