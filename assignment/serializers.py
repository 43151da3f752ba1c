from rest_framework import serializers

from .models import Team, User, PullRequest

DATETIME_FORMAT = '%Y-%m-%dT%H:%M:%SZ'


class TeamMemberSerializer(serializers.ModelSerializer):
    user_id = serializers.CharField(source='id')
    username = serializers.CharField()
    is_active = serializers.BooleanField()

    class Meta:
        model = User
        fields = ['user_id', 'username', 'is_active']


class TeamSerializer(serializers.ModelSerializer):
    team_name = serializers.CharField(source='name')
    members = serializers.SerializerMethodField()

    class Meta:
        model = Team
        fields = ['team_name', 'members']

    @staticmethod
    def get_members(obj):
        members = sorted(obj.members.all(), key=lambda user: user.id)
        return TeamMemberSerializer(members, many=True).data


class UserSerializer(serializers.ModelSerializer):
    user_id = serializers.CharField(source='id')
    username = serializers.CharField()
    team_name = serializers.SerializerMethodField()
    is_active = serializers.BooleanField()

    class Meta:
        model = User
        fields = ['user_id', 'username', 'team_name', 'is_active']

    @staticmethod
    def get_team_name(obj):
        team = obj.teams.first()
        return team.name if team else None


class PullRequestSerializer(serializers.Serializer):
    """Сериализует ``PullRequestRecord`` из хранилища."""

    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField()
    status = serializers.CharField()
    assigned_reviewers = serializers.ListField(child=serializers.CharField())
    createdAt = serializers.DateTimeField(source='created_at', format=DATETIME_FORMAT)
    mergedAt = serializers.DateTimeField(source='merged_at', format=DATETIME_FORMAT, allow_null=True)


class PullRequestShortSerializer(serializers.ModelSerializer):
    pull_request_id = serializers.CharField(source='id')
    pull_request_name = serializers.CharField(source='name')
    author_id = serializers.CharField(source='author.id')
    status = serializers.CharField()

    class Meta:
        model = PullRequest
        fields = ['pull_request_id', 'pull_request_name', 'author_id', 'status']


class UserReviewStatsSerializer(serializers.Serializer):
    id = serializers.CharField()
    username = serializers.CharField()
    prs_reviewed = serializers.IntegerField()
    open_prs_reviewed = serializers.IntegerField()
    merged_prs_reviewed = serializers.IntegerField()


class PRReviewerStatsSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    status = serializers.CharField()
    team_name = serializers.CharField(allow_null=True)
    reviewers_count = serializers.IntegerField()
    created_at = serializers.DateTimeField(format=DATETIME_FORMAT)
    merged_at = serializers.DateTimeField(format=DATETIME_FORMAT, allow_null=True)


class StatsSerializer(serializers.Serializer):
    user_review_stats = UserReviewStatsSerializer(many=True)
    pr_reviewer_stats = PRReviewerStatsSerializer(many=True)


class DeactivationSerializer(serializers.Serializer):
    team_name = serializers.CharField()
    deactivated_user_ids = serializers.ListField(child=serializers.CharField())
    reassignments = serializers.ListField(child=serializers.DictField())


# Входные данные

class CreatePullRequestRequestSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField(max_length=100)
    pull_request_name = serializers.CharField(max_length=200)
    author_id = serializers.CharField(max_length=50)


class MergePullRequestRequestSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField(max_length=100)


class ReassignRequestSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField(max_length=100)
    old_user_id = serializers.CharField(max_length=50)


class TeamMemberRequestSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=50)
    username = serializers.CharField(max_length=100)
    is_active = serializers.BooleanField()


class AddTeamRequestSerializer(serializers.Serializer):
    team_name = serializers.CharField(max_length=100)
    members = TeamMemberRequestSerializer(many=True, required=False, default=list)


class SetIsActiveRequestSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=50)
    is_active = serializers.BooleanField()


class DeactivateMembersRequestSerializer(serializers.Serializer):
    team_name = serializers.CharField(max_length=100)
    user_ids = serializers.ListField(child=serializers.CharField(max_length=50), required=False, default=list)
