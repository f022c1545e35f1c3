"""
User Hierarchy Service.

Supervisor / subordinate tree over active users.
"""

from collections import deque

from django.contrib.auth import get_user_model


class UserHierarchyService:
    """Navigation over User.supervisor links."""

    @staticmethod
    def get_direct_subordinates(user):
        User = get_user_model()
        return User.objects.filter(supervisor=user, is_active=True).order_by('last_name', 'first_name')

    @staticmethod
    def get_all_subordinate_ids(user):
        """Breadth-first walk down the tree. Cycles are visited once."""
        User = get_user_model()
        children = {}
        for user_id, supervisor_id in User.objects.filter(
            is_active=True, supervisor__isnull=False
        ).values_list('id', 'supervisor_id'):
            children.setdefault(supervisor_id, []).append(user_id)

        result = []
        seen = {user.pk}
        queue = deque([user.pk])
        while queue:
            current = queue.popleft()
            for child_id in children.get(current, []):
                if child_id in seen:
                    continue
                seen.add(child_id)
                result.append(child_id)
                queue.append(child_id)
        return result

    @classmethod
    def get_all_subordinates(cls, user):
        User = get_user_model()
        return User.objects.filter(pk__in=cls.get_all_subordinate_ids(user)).order_by('last_name', 'first_name')

    @classmethod
    def is_subordinate(cls, manager, user):
        if manager.pk == user.pk:
            return False
        return user.pk in cls.get_all_subordinate_ids(manager)

    @staticmethod
    def get_management_chain(user):
        """Supervisors from the direct one upwards, without the user."""
        User = get_user_model()
        chain = []
        visited = {user.pk}
        current_id = user.supervisor_id
        while current_id is not None and current_id not in visited:
            visited.add(current_id)
            supervisor = User.objects.filter(pk=current_id).first()
            if supervisor is None:
                break
            chain.append(supervisor)
            current_id = supervisor.supervisor_id
        return chain
