from assignment.models import Team, TeamMembership, User


def create_team(name, *members):
    """
    Создает команду и участников. ``members`` - id или пары (id, is_active).
    """
    team = Team.objects.create(name=name)
    for member in members:
        user_id, is_active = member if isinstance(member, tuple) else (member, True)
        add_member(team, user_id, is_active)
    return team


def add_member(team, user_id, is_active=True):
    user, _ = User.objects.get_or_create(
        id=user_id,
        defaults={'username': user_id.capitalize(), 'is_active': is_active},
    )
    TeamMembership.objects.create(team=team, user=user)
    return user
