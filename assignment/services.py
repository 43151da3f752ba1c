from dataclasses import dataclass, field

import structlog
from django.db import DatabaseError, models, transaction
from django.db.models import Count, OuterRef, Subquery

from .errors import (
    DomainError, ErrorCode, NoActiveReviewer, StoreError, StoreErrorKind, classify_db_error,
)
from .models import PullRequest, ReviewerAssignment, Team, TeamMembership, User
from .selector import ReviewerSelector
from .store import DjangoPrStore, PrStore, PullRequestRecord, ReassignResult

logger = structlog.get_logger(__name__)

PR_ID_MAX_LENGTH = PullRequest._meta.get_field('id').max_length
PR_NAME_MAX_LENGTH = PullRequest._meta.get_field('name').max_length
USER_ID_MAX_LENGTH = User._meta.get_field('id').max_length
TEAM_NAME_MAX_LENGTH = Team._meta.get_field('name').max_length


def validate_identifier(value, field_name: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise DomainError(ErrorCode.INVALID_INPUT, f"{field_name} must be a non-empty string")
    if len(value) > max_length:
        raise DomainError(ErrorCode.INVALID_INPUT, f"{field_name} is longer than {max_length} characters")
    return value


def _internal_error(exc: StoreError, **context) -> DomainError:
    logger.error('storage failure', kind=exc.kind.value, entity=exc.entity, error=exc.message, **context)
    return DomainError(ErrorCode.INTERNAL_ERROR)


@dataclass
class DeactivationResult:
    team_name: str
    deactivated_user_ids: list = field(default_factory=list)
    reassignments: list = field(default_factory=list)


class TeamService:
    """
    Сервис для управления командами и пользователями
    """

    @classmethod
    def create_team_with_members(cls, team_name: str, members_data: list) -> Team:
        """
        Создает команду и добавляет/обновляет пользователей

        Если команда уже есть, участники из запроса добавляются в нее.
        Пустой список участников для существующей команды - TEAM_EXISTS.
        """
        validate_identifier(team_name, 'team_name', TEAM_NAME_MAX_LENGTH)
        logger.info('add team started', team_name=team_name, members=len(members_data))

        try:
            with transaction.atomic():
                team = Team.objects.filter(name=team_name).first()
                if team is not None and not members_data:
                    logger.warning('team already exists', team_name=team_name)
                    raise DomainError(ErrorCode.TEAM_EXISTS)

                if team is None:
                    team = Team.objects.create(name=team_name)

                for member_data in members_data:
                    cls._create_or_update_user(team, member_data)
        except DatabaseError as exc:
            error = classify_db_error(exc, 'team')
            if error.kind == StoreErrorKind.ALREADY_EXISTS:
                raise DomainError(ErrorCode.TEAM_EXISTS) from exc
            if error.kind == StoreErrorKind.INVALID_INPUT:
                raise DomainError(ErrorCode.INVALID_INPUT, error.message) from exc
            raise _internal_error(error, team_name=team_name) from exc

        logger.info('team added', team_name=team.name, members=len(members_data))
        return team

    @classmethod
    def _create_or_update_user(cls, team: Team, member_data: dict) -> User:
        user_id = validate_identifier(member_data.get('user_id'), 'user_id', USER_ID_MAX_LENGTH)

        user, _ = User.objects.update_or_create(
            id=user_id,
            defaults={
                'username': member_data['username'],
                'is_active': member_data['is_active'],
            },
        )

        # Пользователь может состоять только в одной команде
        TeamMembership.objects.filter(user=user).exclude(team=team).delete()
        TeamMembership.objects.get_or_create(team=team, user=user)

        return user

    @classmethod
    def get_team_with_members(cls, team_name: str) -> Team:
        try:
            return Team.objects.prefetch_related('members').get(name=team_name)
        except Team.DoesNotExist:
            raise DomainError(ErrorCode.NOT_FOUND, f"team '{team_name}' not found")

    @classmethod
    def deactivate_members(cls, team_name: str, user_ids: list = None, selector: ReviewerSelector = None):
        """
        Массовая деактивация пользователей команды с переназначением открытых PR

        Для каждого открытого PR, где деактивируемый пользователь - ревьювер,
        выбирается замена среди активных участников команды. Если замены нет,
        ревьювер просто снимается с PR. Все в одной транзакции, строки PR
        блокируются так же, как при обычном переназначении.

        Returns:
            DeactivationResult: деактивированные id и выполненные замены
        """
        selector = selector or ReviewerSelector()
        logger.info('deactivate team members started', team_name=team_name, user_ids=user_ids)

        try:
            with transaction.atomic():
                try:
                    team = Team.objects.get(name=team_name)
                except Team.DoesNotExist:
                    raise DomainError(ErrorCode.NOT_FOUND, f"team '{team_name}' not found")

                roster = list(User.objects.filter(memberships__team=team).order_by('id'))
                deactivating = [user.id for user in roster if not user_ids or user.id in user_ids]
                result = DeactivationResult(team_name=team.name, deactivated_user_ids=deactivating)

                if not deactivating:
                    return result

                pr_ids = set(
                    ReviewerAssignment.objects
                    .filter(user_id__in=deactivating, pull_request__status=PullRequest.Status.OPEN)
                    .values_list('pull_request_id', flat=True)
                )
                open_prs = (
                    PullRequest.objects
                    .select_for_update()
                    .filter(id__in=pr_ids, status=PullRequest.Status.OPEN)
                    .order_by('id')
                )

                for pr in open_prs:
                    cls._replace_deactivated_reviewers(pr, roster, deactivating, selector, result)

                User.objects.filter(id__in=deactivating).update(is_active=False)
        except DatabaseError as exc:
            raise _internal_error(classify_db_error(exc, 'team'), team_name=team_name) from exc

        logger.info('team members deactivated', team_name=team_name,
                    deactivated=len(result.deactivated_user_ids), reassigned=len(result.reassignments))
        return result

    @classmethod
    def _replace_deactivated_reviewers(cls, pr, roster, deactivating, selector, result):
        current = list(
            ReviewerAssignment.objects
            .filter(pull_request=pr)
            .order_by('id')
            .values_list('user_id', flat=True)
        )

        for old_reviewer_id in [user_id for user_id in current if user_id in deactivating]:
            excluded = {pr.author_id, *current, *deactivating}
            try:
                new_reviewer_id = selector.select(roster, excluded, 1)[0]
            except NoActiveReviewer:
                new_reviewer_id = None

            ReviewerAssignment.objects.filter(pull_request=pr, user_id=old_reviewer_id).delete()
            current.remove(old_reviewer_id)
            if new_reviewer_id is not None:
                ReviewerAssignment.objects.create(pull_request=pr, user_id=new_reviewer_id)
                current.append(new_reviewer_id)

            result.reassignments.append({
                'pull_request_id': pr.id,
                'old_user_id': old_reviewer_id,
                'new_user_id': new_reviewer_id,
            })


class UserService:
    """
    Сервис для управления пользователями
    """

    @classmethod
    def set_user_active_status(cls, user_id: str, is_active: bool) -> User:
        if not isinstance(is_active, bool):
            raise DomainError(ErrorCode.INVALID_INPUT, 'is_active must be a boolean')

        updated = User.objects.filter(id=user_id).update(is_active=is_active)
        if not updated:
            logger.warning('user not found while updating activity', user_id=user_id)
            raise DomainError(ErrorCode.NOT_FOUND, f"user '{user_id}' not found")

        logger.info('user activity updated', user_id=user_id, is_active=is_active)
        return User.objects.get(id=user_id)

    @classmethod
    def get_user_review_assignments(cls, user_id: str) -> list:
        if not User.objects.filter(id=user_id).exists():
            raise DomainError(ErrorCode.NOT_FOUND, f"user '{user_id}' not found")

        return list(
            PullRequest.objects
            .filter(assignments__user_id=user_id)
            .order_by('-created_at', 'id')
        )


class PrLifecycleService:
    """
    Жизненный цикл Pull Request'а: создание, merge, переназначение ревьювера

    Хранилище и генератор случайности передаются снаружи, в тестах их
    можно подменить.
    """

    REVIEWERS_ON_CREATE = 2
    REVIEWERS_ON_REASSIGN = 1

    def __init__(self, store: PrStore = None, selector: ReviewerSelector = None):
        self.store = store if store is not None else DjangoPrStore()
        self.selector = selector if selector is not None else ReviewerSelector()

    def create_pull_request(self, pr_id: str, pr_name: str, author_id: str) -> PullRequestRecord:
        """
        Создает PR и автоматически назначает до 2 ревьюверов из команды автора

        Если активных кандидатов нет, PR создается без ревьюверов.

        Raises:
            DomainError: NOT_FOUND (автор или его команда), PR_EXISTS, INVALID_INPUT
        """
        validate_identifier(pr_id, 'pull_request_id', PR_ID_MAX_LENGTH)
        validate_identifier(pr_name, 'pull_request_name', PR_NAME_MAX_LENGTH)
        validate_identifier(author_id, 'author_id', USER_ID_MAX_LENGTH)

        try:
            candidates = self.store.select_candidates(author_id)
        except StoreError as exc:
            if exc.kind == StoreErrorKind.NOT_FOUND:
                raise DomainError(ErrorCode.NOT_FOUND, f"author '{author_id}': {exc.message}") from exc
            raise _internal_error(exc, pr_id=pr_id) from exc

        try:
            reviewer_ids = self.selector.select(candidates, {author_id}, self.REVIEWERS_ON_CREATE)
        except NoActiveReviewer:
            logger.info('no active reviewers available, creating PR without reviewers',
                        pr_id=pr_id, author_id=author_id)
            reviewer_ids = []

        try:
            return self.store.create(pr_id, pr_name, author_id, reviewer_ids)
        except StoreError as exc:
            if exc.kind == StoreErrorKind.ALREADY_EXISTS:
                raise DomainError(ErrorCode.PR_EXISTS) from exc
            if exc.kind == StoreErrorKind.INVALID_INPUT:
                raise DomainError(ErrorCode.INVALID_INPUT, exc.message) from exc
            raise _internal_error(exc, pr_id=pr_id) from exc

    def merge_pull_request(self, pr_id: str) -> PullRequestRecord:
        """
        Помечает PR как MERGED. Повторный вызов возвращает тот же PR без ошибки.
        """
        validate_identifier(pr_id, 'pull_request_id', PR_ID_MAX_LENGTH)

        try:
            return self.store.merge(pr_id)
        except StoreError as exc:
            if exc.kind == StoreErrorKind.NOT_FOUND:
                raise DomainError(ErrorCode.NOT_FOUND, f"PR '{pr_id}' not found") from exc
            raise _internal_error(exc, pr_id=pr_id) from exc

    def reassign_reviewer(self, pr_id: str, old_user_id: str) -> ReassignResult:
        """
        Переназначает ревьювера на другого активного участника его команды

        Проверки в порядке: PR существует, PR открыт, ревьювер назначен,
        есть кандидат на замену. Все проверки выполняются под блокировкой
        строки PR внутри транзакции хранилища.

        Raises:
            DomainError: NOT_FOUND, PR_MERGED, NOT_ASSIGNED, NO_CANDIDATE
        """
        validate_identifier(pr_id, 'pull_request_id', PR_ID_MAX_LENGTH)
        validate_identifier(old_user_id, 'old_user_id', USER_ID_MAX_LENGTH)

        def pick_replacement(pr: PullRequestRecord) -> str:
            if pr.status == PullRequest.Status.MERGED:
                raise DomainError(ErrorCode.PR_MERGED)

            if old_user_id not in pr.assigned_reviewers:
                raise DomainError(ErrorCode.NOT_ASSIGNED)

            try:
                candidates = self.store.select_candidates(old_user_id)
            except StoreError as exc:
                if exc.kind == StoreErrorKind.NOT_FOUND:
                    raise DomainError(ErrorCode.NO_CANDIDATE, 'reviewer has no team') from exc
                raise _internal_error(exc, pr_id=pr_id) from exc

            excluded = {pr.author_id, old_user_id, *pr.assigned_reviewers}
            try:
                return self.selector.select(candidates, excluded, self.REVIEWERS_ON_REASSIGN)[0]
            except NoActiveReviewer as exc:
                raise DomainError(ErrorCode.NO_CANDIDATE) from exc

        try:
            return self.store.reassign(pr_id, old_user_id, pick_replacement)
        except StoreError as exc:
            if exc.kind == StoreErrorKind.NOT_FOUND and exc.entity == 'reviewer_assignment':
                raise DomainError(ErrorCode.NOT_ASSIGNED) from exc
            if exc.kind == StoreErrorKind.NOT_FOUND:
                raise DomainError(ErrorCode.NOT_FOUND, f"PR '{pr_id}' not found") from exc
            if exc.kind == StoreErrorKind.ALREADY_EXISTS:
                raise DomainError(ErrorCode.NO_CANDIDATE, 'replacement is already assigned to this PR') from exc
            raise _internal_error(exc, pr_id=pr_id) from exc


class StatsService:
    """
    Сервис для сбора статистики
    """

    @classmethod
    def get_review_stats(cls):
        """
        Returns:
            dict: Статистика по пользователям и PR
        """
        user_review_stats = (
            User.objects
            .annotate(
                prs_reviewed=Count('review_assignments'),
                open_prs_reviewed=Count(
                    'review_assignments',
                    filter=models.Q(review_assignments__pull_request__status=PullRequest.Status.OPEN),
                ),
                merged_prs_reviewed=Count(
                    'review_assignments',
                    filter=models.Q(review_assignments__pull_request__status=PullRequest.Status.MERGED),
                ),
            )
            .filter(prs_reviewed__gt=0)
            .values('id', 'username', 'prs_reviewed', 'open_prs_reviewed', 'merged_prs_reviewed')
            .order_by('-prs_reviewed', 'id')
        )

        author_team = (
            TeamMembership.objects
            .filter(user_id=OuterRef('author_id'))
            .order_by('-joined_at')
            .values('team__name')[:1]
        )
        pr_reviewer_stats = (
            PullRequest.objects
            .annotate(
                reviewers_count=Count('assignments'),
                team_name=Subquery(author_team),
            )
            .values(
                'id', 'name', 'status', 'team_name',
                'reviewers_count', 'created_at', 'merged_at'
            )
            .order_by('-created_at', 'id')
        )

        return {
            'user_review_stats': list(user_review_stats),
            'pr_reviewer_stats': list(pr_reviewer_stats)
        }
