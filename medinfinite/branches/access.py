"""
Branch scoping for every API view.

Each record belongs to a branch, and a caller only ever sees the branches
their role grants:

- super admins (and Django superusers) see every branch
- branch admins and admins see the branches linked through AdminBranch
- carers see the branch of their staff profile
- clients see the branch of their client profile
"""
import logging

from .models import AdminBranch

logger = logging.getLogger('medinfinite.branches')


def get_branch_ids_for_user(user):
    """
    Return the list of branch ids visible to ``user``,
    or None when the user can see every branch.
    """
    if not user or not user.is_authenticated:
        return []

    if user.is_super_admin:
        return None

    if user.role in (user.ROLE_BRANCH_ADMIN, user.ROLE_ADMIN):
        return list(AdminBranch.objects.filter(admin=user).values_list('branch_id', flat=True))

    if user.role == user.ROLE_CARER:
        from medinfinite.staff.models import Staff
        return list(Staff.objects.filter(user=user).values_list('branch_id', flat=True))

    if user.role == user.ROLE_CLIENT:
        from medinfinite.clients.models import Client
        return list(Client.objects.filter(user=user).values_list('branch_id', flat=True))

    return []


def scope_queryset(queryset, user, field='branch'):
    """Restrict a queryset to the branches visible to ``user``"""
    branch_ids = get_branch_ids_for_user(user)
    if branch_ids is None:
        return queryset
    return queryset.filter(**{f'{field}__in': branch_ids})


def can_access_branch(user, branch_id):
    branch_ids = get_branch_ids_for_user(user)
    return branch_ids is None or (branch_id is not None and int(branch_id) in branch_ids)


def can_manage_branch(user, branch_id, permission=None):
    """
    Super admins manage every branch. Other admins manage the branches they
    are linked to, optionally only when the link grants ``permission``.
    """
    if not user or not user.is_authenticated:
        return False
    if user.is_super_admin:
        return True
    if user.role not in (user.ROLE_BRANCH_ADMIN, user.ROLE_ADMIN) or branch_id is None:
        return False

    link = AdminBranch.objects.filter(admin=user, branch_id=branch_id).first()
    if link is None:
        return False
    if permission is None:
        return True
    return bool((link.permissions or {}).get(permission, False))


def is_admin(user):
    return bool(user and user.is_authenticated and user.is_admin_role)


def branch_admin_users(branch_id):
    """Users who should hear about events in a branch: its admins plus every super admin"""
    from django.contrib.auth import get_user_model
    from django.db.models import Q

    User = get_user_model()
    return User.objects.filter(
        Q(role=User.ROLE_SUPER_ADMIN) | Q(admin_branches__branch_id=branch_id),
        is_active=True,
    ).distinct()
