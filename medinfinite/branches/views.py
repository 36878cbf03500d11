import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from django.db import IntegrityError, transaction
from django.core.cache import cache

from medinfinite.core.cache_utils import (
    get_branch_list_cache_key, get_branch_cache_key, BRANCH_LIST_CACHE_TTL, BRANCH_CACHE_TTL
)
from medinfinite.core.utils import create_audit_log
from .access import get_branch_ids_for_user, can_access_branch, can_manage_branch
from .models import Organization, Branch, AdminBranch, DEFAULT_ADMIN_PERMISSIONS
from .serializers import (
    OrganizationSerializer, BranchSerializer, AdminBranchSerializer,
    CreateBranchAdminSerializer, UpdateMemberSerializer
)

logger = logging.getLogger('medinfinite.branches')

User = get_user_model()


# Organization views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def organization_list_create(request):
    """List organizations or create one (create requires super admin)"""
    if request.method == 'GET':
        organizations = Organization.objects.all().order_by('name')
        serializer = OrganizationSerializer(organizations, many=True)
        return Response(serializer.data)

    if not request.user.is_super_admin:
        logger.warning(f"User {request.user.username} attempted to create an organization without super admin role")
        return Response({'error': 'Only super administrators can create organizations'}, status=status.HTTP_403_FORBIDDEN)

    serializer = OrganizationSerializer(data=request.data)
    if serializer.is_valid():
        organization = serializer.save()
        logger.info(f"Organization '{organization.name}' created by {request.user.username}")
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def organization_detail(request, pk):
    """Retrieve or update an organization (update requires super admin)"""
    organization = get_object_or_404(Organization, pk=pk)

    if request.method == 'GET':
        return Response(OrganizationSerializer(organization).data)

    if not request.user.is_super_admin:
        return Response({'error': 'Only super administrators can modify organizations'}, status=status.HTTP_403_FORBIDDEN)

    serializer = OrganizationSerializer(organization, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        logger.info(f"Organization {pk} updated by {request.user.username}")
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Branch views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def branch_list_create(request):
    """List branches visible to the user or create a new branch (create requires super admin)"""
    try:
        if request.method == 'GET':
            logger.info(f"User {request.user.username} requested branch list")

            branch_ids = get_branch_ids_for_user(request.user)
            scope_key = 'all' if branch_ids is None else '-'.join(str(i) for i in sorted(branch_ids)) or 'none'

            cache_key = get_branch_list_cache_key(scope_key)
            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache hit for branch list (scope: {scope_key})")
                return Response(cached_data)

            branches = Branch.objects.select_related('organization')
            if branch_ids is not None:
                branches = branches.filter(id__in=branch_ids)

            response_data = BranchSerializer(branches, many=True).data
            cache.set(cache_key, response_data, BRANCH_LIST_CACHE_TTL)
            logger.debug(f"Cached branch list (scope: {scope_key}), returning {len(response_data)} branches")
            return Response(response_data)

        if not request.user.is_super_admin:
            logger.warning(f"User {request.user.username} attempted to create branch without super admin role")
            return Response({'error': 'Only super administrators can create branches'}, status=status.HTTP_403_FORBIDDEN)

        logger.info(f"User {request.user.username} creating branch with data: {request.data}")
        serializer = BranchSerializer(data=request.data)
        if serializer.is_valid():
            try:
                branch = serializer.save()
            except IntegrityError as e:
                logger.error(f"IntegrityError creating branch: {str(e)}", exc_info=True)
                return Response({'error': 'A branch with this name already exists in the organization'}, status=status.HTTP_400_BAD_REQUEST)
            create_audit_log(request, 'create', 'Branch', branch.id, {'name': branch.name}, object_name=branch.name)
            logger.info(f"Branch '{branch.name}' created successfully by {request.user.username}")
            return Response(serializer.data, status=status.HTTP_201_CREATED)

        logger.warning(f"Branch creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error in branch_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def branch_detail(request, pk):
    """Retrieve, update or delete a branch"""
    branch = get_object_or_404(Branch, pk=pk)

    if not can_access_branch(request.user, branch.id):
        return Response({'error': 'You do not have access to this branch'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        cache_key = get_branch_cache_key(pk)
        cached_data = cache.get(cache_key)
        if cached_data is not None:
            return Response(cached_data)
        response_data = BranchSerializer(branch).data
        cache.set(cache_key, response_data, BRANCH_CACHE_TTL)
        return Response(response_data)

    if request.method == 'DELETE':
        if not request.user.is_super_admin:
            return Response({'error': 'Only super administrators can delete branches'}, status=status.HTTP_403_FORBIDDEN)
        logger.info(f"User {request.user.username} deleting branch {pk} ({branch.name})")
        create_audit_log(request, 'delete', 'Branch', branch.id, object_name=branch.name)
        branch.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    if not can_manage_branch(request.user, branch.id):
        logger.warning(f"User {request.user.username} attempted to modify branch {pk} without admin rights")
        return Response({'error': 'Only administrators of this branch can modify it'}, status=status.HTTP_403_FORBIDDEN)

    serializer = BranchSerializer(branch, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        try:
            serializer.save()
        except IntegrityError:
            return Response({'error': 'A branch with this name already exists in the organization'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request, 'update', 'Branch', branch.id, dict(request.data), object_name=branch.name)
        logger.info(f"Branch {pk} updated successfully")
        return Response(serializer.data)
    logger.warning(f"Branch update validation failed: {serializer.errors}")
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def branch_admin_list(request, pk):
    """List the administrators linked to a branch"""
    branch = get_object_or_404(Branch, pk=pk)
    if not can_manage_branch(request.user, branch.id):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    links = AdminBranch.objects.filter(branch=branch).select_related('admin', 'branch').order_by('admin__username')
    return Response(AdminBranchSerializer(links, many=True).data)


# Privileged user administration
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def create_branch_admin(request):
    """
    Create (or reuse) a user by email, give them the branch admin role and
    link them to the requested branches.

    Super admins can link any branch; branch admins only the branches they manage.
    Repeating the call for the same email is idempotent.
    """
    caller = request.user
    if not (caller.is_super_admin or caller.role == User.ROLE_BRANCH_ADMIN):
        logger.warning(f"User {caller.username} attempted to create a branch admin without privileges")
        return Response({'error': 'Only super administrators or branch administrators can create branch admins'},
                        status=status.HTTP_403_FORBIDDEN)

    serializer = CreateBranchAdminSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    forbidden = [branch_id for branch_id in data['branch_ids'] if not can_manage_branch(caller, branch_id)]
    if forbidden:
        return Response({'error': f'You cannot assign admins to branches {forbidden}'}, status=status.HTTP_403_FORBIDDEN)

    email = data['email'].lower()
    permissions = {**DEFAULT_ADMIN_PERMISSIONS, **data.get('permissions', {})}

    try:
        with transaction.atomic():
            user = User.objects.filter(email__iexact=email).first()
            created = user is None
            if created:
                username = email
                suffix = 1
                while User.objects.filter(username=username).exists():
                    suffix += 1
                    username = f"{email}-{suffix}"
                user = User(
                    username=username,
                    email=email,
                    first_name=data.get('first_name', ''),
                    last_name=data.get('last_name', ''),
                    role=User.ROLE_BRANCH_ADMIN,
                )
                if data.get('password'):
                    user.set_password(data['password'])
                else:
                    user.set_unusable_password()
                user.save()
            elif not user.is_super_admin and user.role != User.ROLE_BRANCH_ADMIN:
                user.role = User.ROLE_BRANCH_ADMIN
                user.save(update_fields=['role', 'updated_at'])

            for branch_id in data['branch_ids']:
                link, link_created = AdminBranch.objects.get_or_create(
                    admin=user, branch_id=branch_id, defaults={'permissions': permissions}
                )
                if not link_created and 'permissions' in data:
                    link.permissions = permissions
                    link.save(update_fields=['permissions'])
    except IntegrityError as e:
        logger.error(f"IntegrityError creating branch admin {email}: {str(e)}", exc_info=True)
        return Response({'error': 'Could not create branch admin'}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request, 'admin_create', 'User', user.id,
                     {'branch_ids': data['branch_ids'], 'created': created}, object_name=email)
    logger.info(f"Branch admin {email} {'created' if created else 'updated'} by {caller.username} for branches {data['branch_ids']}")

    links = AdminBranch.objects.filter(admin=user).select_related('admin', 'branch')
    return Response({
        'user_id': user.id,
        'email': user.email,
        'role': user.role,
        'created': created,
        'branches': AdminBranchSerializer(links, many=True).data,
    }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def update_organization_member(request, user_id):
    """Change the role, branch links, permissions or active flag of an existing user"""
    caller = request.user
    member = get_object_or_404(User, pk=user_id)

    serializer = UpdateMemberSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    if not caller.is_super_admin:
        if caller.role != User.ROLE_BRANCH_ADMIN:
            return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
        if member.is_super_admin or data.get('role') == User.ROLE_SUPER_ADMIN:
            return Response({'error': 'Only super administrators can manage super administrators'},
                            status=status.HTTP_403_FORBIDDEN)
        current_branches = list(AdminBranch.objects.filter(admin=member).values_list('branch_id', flat=True))
        touched = set(current_branches) | set(data.get('branch_ids', []))
        if any(not can_manage_branch(caller, branch_id) for branch_id in touched):
            return Response({'error': 'You can only manage members of your own branches'},
                            status=status.HTTP_403_FORBIDDEN)

    changes = {}
    with transaction.atomic():
        for field in ('role', 'is_active', 'first_name', 'last_name'):
            if field in data and getattr(member, field) != data[field]:
                changes[field] = {'old': getattr(member, field), 'new': data[field]}
                setattr(member, field, data[field])
        if changes:
            member.save()

        if 'branch_ids' in data:
            AdminBranch.objects.filter(admin=member).exclude(branch_id__in=data['branch_ids']).delete()
            for branch_id in data['branch_ids']:
                AdminBranch.objects.get_or_create(admin=member, branch_id=branch_id)
            changes['branch_ids'] = data['branch_ids']

        if 'permissions' in data:
            for link in AdminBranch.objects.filter(admin=member):
                link.permissions = {**(link.permissions or {}), **data['permissions']}
                link.save(update_fields=['permissions'])
            changes['permissions'] = data['permissions']

    create_audit_log(request, 'member_update', 'User', member.id, changes, object_name=member.email or member.username)
    logger.info(f"Member {member.username} updated by {caller.username}: {list(changes)}")

    links = AdminBranch.objects.filter(admin=member).select_related('admin', 'branch')
    return Response({
        'user_id': member.id,
        'role': member.role,
        'is_active': member.is_active,
        'branches': AdminBranchSerializer(links, many=True).data,
    })
