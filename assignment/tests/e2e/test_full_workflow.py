from unittest.mock import patch

from django.db import DatabaseError
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase


class FullWorkflowE2ETest(APITestCase):
    """
    End-to-end
    """

    def add_team(self, team_name, *user_ids, inactive=()):
        team_data = {
            "team_name": team_name,
            "members": [
                {"user_id": user_id, "username": user_id.upper(), "is_active": user_id not in inactive}
                for user_id in user_ids
            ]
        }
        response = self.client.post(reverse('assignment:team-add'), team_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response

    def create_pr(self, pr_id, author_id):
        pr_data = {
            "pull_request_id": pr_id,
            "pull_request_name": f"PR {pr_id}",
            "author_id": author_id
        }
        return self.client.post(reverse('assignment:pr-create'), pr_data, format='json')

    def test_complete_pr_workflow(self):
        """
        E2E тест: полный workflow создания команды, PR, переназначения и мержа
        """
        response = self.add_team("backend-team", "dev1", "dev2", "dev3", "dev4")
        self.assertEqual(response.data['team']['team_name'], 'backend-team')
        self.assertEqual(len(response.data['team']['members']), 4)

        # Проверяем что команда создана через GET API
        response = self.client.get(f"{reverse('assignment:team-get')}?team_name=backend-team")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [member['user_id'] for member in response.data['members']],
            ["dev1", "dev2", "dev3", "dev4"]
        )

        response = self.create_pr("feature-auth", "dev1")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        pr = response.data['pr']
        self.assertEqual(pr['pull_request_id'], 'feature-auth')
        self.assertEqual(pr['pull_request_name'], 'PR feature-auth')
        self.assertEqual(pr['author_id'], 'dev1')
        self.assertEqual(pr['status'], 'OPEN')
        self.assertIsNone(pr['mergedAt'])
        self.assertRegex(pr['createdAt'], r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$')

        # Должны быть назначены 2 ревьювера (исключая автора)
        assigned_reviewers = pr['assigned_reviewers']
        self.assertEqual(len(assigned_reviewers), 2)
        self.assertNotIn('dev1', assigned_reviewers)

        reviewer_id = assigned_reviewers[0]
        response = self.client.get(f"{reverse('assignment:user-get-review')}?user_id={reviewer_id}")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user_id'], reviewer_id)
        self.assertEqual(
            [item['pull_request_id'] for item in response.data['pull_requests']], ['feature-auth']
        )

        # Переназначаем одного ревьювера через API
        reassign_data = {
            "pull_request_id": "feature-auth",
            "old_user_id": reviewer_id
        }
        response = self.client.post(reverse('assignment:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        new_reviewer = response.data['replaced_by']
        self.assertNotIn(new_reviewer, {reviewer_id, assigned_reviewers[1], 'dev1'})
        self.assertIn(new_reviewer, response.data['pr']['assigned_reviewers'])

        # У старого ревьювера больше нет этого PR
        response = self.client.get(f"{reverse('assignment:user-get-review')}?user_id={reviewer_id}")
        self.assertEqual(response.data['pull_requests'], [])

        # Мержим PR через API
        merge_data = {"pull_request_id": "feature-auth"}
        response = self.client.post(reverse('assignment:pr-merge'), merge_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pr']['status'], 'MERGED')
        merged_at = response.data['pr']['mergedAt']
        self.assertIsNotNone(merged_at)

        # Переназначение после мержа запрещено
        reassign_data['old_user_id'] = new_reviewer
        response = self.client.post(reverse('assignment:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'PR_MERGED')

        # Идемпотентность мержа
        response = self.client.post(reverse('assignment:pr-merge'), merge_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pr']['mergedAt'], merged_at)

    def test_user_activation_workflow(self):
        """
        E2E тест: workflow с деактивацией пользователя
        """
        self.add_team("qa-team", "qa1", "qa2", "qa3")

        response = self.client.post(
            reverse('assignment:user-set-active'), {"user_id": "qa2", "is_active": False}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['team_name'], 'qa-team')
        self.assertFalse(response.data['user']['is_active'])

        # Деактивированный пользователь не назначается
        response = self.create_pr("test-fix", "qa1")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['assigned_reviewers'], ['qa3'])

        response = self.client.post(
            reverse('assignment:user-set-active'), {"user_id": "qa2", "is_active": True}, format='json'
        )
        self.assertTrue(response.data['user']['is_active'])

        response = self.create_pr("new-feature", "qa3")
        self.assertEqual(sorted(response.data['pr']['assigned_reviewers']), ['qa1', 'qa2'])

    def test_small_team_reassign_workflow(self):
        """
        E2E тест: в команде из двух человек замены нет, после добавления участника - есть
        """
        self.add_team("duo", "alice", "bob")

        response = self.create_pr("duo-pr", "alice")
        self.assertEqual(response.data['pr']['assigned_reviewers'], ['bob'])

        reassign_data = {"pull_request_id": "duo-pr", "old_user_id": "bob"}
        response = self.client.post(reverse('assignment:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'NO_CANDIDATE')

        self.add_team("duo", "carol")

        response = self.client.post(reverse('assignment:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['replaced_by'], 'carol')
        self.assertEqual(response.data['pr']['assigned_reviewers'], ['carol'])

    def test_deactivate_members_workflow(self):
        self.add_team("ops", "o1", "o2", "o3", "o4")
        response = self.create_pr("ops-pr", "o1")
        reviewers = response.data['pr']['assigned_reviewers']

        response = self.client.post(
            reverse('assignment:team-deactivate-members'),
            {"team_name": "ops", "user_ids": [reviewers[0]]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deactivated_user_ids'], [reviewers[0]])
        self.assertEqual(len(response.data['reassignments']), 1)
        self.assertEqual(response.data['reassignments'][0]['old_user_id'], reviewers[0])

        response = self.client.get(f"{reverse('assignment:team-get')}?team_name=ops")
        inactive = [member['user_id'] for member in response.data['members'] if not member['is_active']]
        self.assertEqual(inactive, [reviewers[0]])

    def test_error_scenarios_workflow(self):
        """
        E2E тест: различные сценарии ошибок
        """
        self.add_team("mobile-team", "m1", "m2")

        # Несуществующий автор
        response = self.create_pr("invalid-pr", "nonexistent-user")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['code'], 'NOT_FOUND')

        response = self.create_pr("valid-pr", "m1")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # PR с тем же ID
        response = self.create_pr("valid-pr", "m1")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'PR_EXISTS')

        # Не назначенный ревьювер
        response = self.client.post(
            reverse('assignment:pr-reassign'),
            {"pull_request_id": "valid-pr", "old_user_id": "m1"},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'NOT_ASSIGNED')

        # Несуществующий PR
        response = self.client.post(
            reverse('assignment:pr-merge'), {"pull_request_id": "ghost"}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        # Повторное создание команды без участников
        response = self.client.post(
            reverse('assignment:team-add'), {"team_name": "mobile-team", "members": []}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'TEAM_EXISTS')

        # Несуществующая команда
        response = self.client.get(f"{reverse('assignment:team-get')}?team_name=ghost")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_invalid_input(self):
        """
        E2E тест: некорректные запросы
        """
        cases = [
            (reverse('assignment:pr-create'), {"pull_request_id": "x"}),
            (reverse('assignment:pr-create'),
             {"pull_request_id": "x" * 101, "pull_request_name": "Too long", "author_id": "m1"}),
            (reverse('assignment:pr-merge'), {}),
            (reverse('assignment:pr-reassign'), {"pull_request_id": "pr"}),
            (reverse('assignment:user-set-active'), {"user_id": "u1", "is_active": "maybe"}),
        ]
        for url, payload in cases:
            with self.subTest(url=url, payload=payload):
                response = self.client.post(url, payload, format='json')
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.data['error']['code'], 'INVALID_INPUT')
                self.assertTrue(response.data['error']['message'])

        response = self.client.post(
            reverse('assignment:pr-create'), '{not json', content_type='application/json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'INVALID_INPUT')

        response = self.client.get(reverse('assignment:team-get'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_statistic(self):
        self.add_team("stats", "s1", "s2", "s3")
        self.create_pr("stats-pr", "s1")

        response = self.client.get(reverse('assignment:statistic-view'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['user_review_stats']), 2)
        self.assertEqual(response.data['pr_reviewer_stats'][0]['reviewers_count'], 2)
        self.assertEqual(response.data['pr_reviewer_stats'][0]['team_name'], 'stats')


class ServiceEndpointsE2ETest(APITestCase):
    def test_health_ok(self):
        response = self.client.get(reverse('assignment:health-check'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'status': 'ok'})

    def test_health_database_unavailable(self):
        with patch('assignment.views.health_views.connection') as connection:
            connection.cursor.side_effect = DatabaseError("connection refused")
            response = self.client.get(reverse('assignment:health-check'))

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data, {'status': 'unavailable'})

    def test_request_id_is_echoed(self):
        response = self.client.get(reverse('assignment:health-check'), HTTP_X_REQUEST_ID='req-42')

        self.assertEqual(response['X-Request-ID'], 'req-42')

    def test_request_id_is_generated(self):
        response = self.client.get(reverse('assignment:health-check'))

        self.assertEqual(len(response['X-Request-ID']), 32)

    def test_unexpected_error_is_internal(self):
        with patch('assignment.views.pull_request_views.PrLifecycleService') as service:
            service.return_value.merge_pull_request.side_effect = RuntimeError("boom")
            response = self.client.post(
                reverse('assignment:pr-merge'), {"pull_request_id": "pr"}, format='json'
            )

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error']['code'], 'INTERNAL_ERROR')
        self.assertNotIn('boom', response.data['error']['message'])
