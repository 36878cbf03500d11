import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date

from medinfinite.branches.access import get_branch_ids_for_user, is_admin, scope_queryset
from medinfinite.branches.models import AdminBranch, Branch
from .models import Setting, AuditLog
from .serializers import UserSerializer, UserCreateSerializer, SettingSerializer, AuditLogSerializer
from .utils import paginate, create_audit_log

logger = logging.getLogger('medinfinite.core')

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


def _manageable_roles(user):
    if user.is_super_admin:
        return {choice for choice, _ in User.ROLE_CHOICES}
    return {User.ROLE_CARER, User.ROLE_CLIENT}


def _visible_users(user):
    """Super admins see everyone; other admins see the people of their branches"""
    if user.is_super_admin:
        return User.objects.all()
    branch_ids = get_branch_ids_for_user(user)
    return User.objects.filter(
        Q(pk=user.pk) |
        Q(admin_branches__branch_id__in=branch_ids) |
        Q(staff_profile__branch_id__in=branch_ids) |
        Q(client_profile__branch_id__in=branch_ids)
    ).distinct()


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def user_list_create(request):
    """List users or create a new one (administrators only)"""
    if not is_admin(request.user):
        return Response({'error': 'Only administrators can manage users'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        users = _visible_users(request.user).order_by('username')
        if request.query_params.get('role'):
            users = users.filter(role=request.query_params['role'])
        search = request.query_params.get('search')
        if search:
            users = users.filter(Q(username__icontains=search) | Q(email__icontains=search) |
                                 Q(first_name__icontains=search) | Q(last_name__icontains=search))
        return Response(paginate(users, request, UserSerializer))

    serializer = UserCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    if serializer.validated_data.get('role', User.ROLE_CARER) not in _manageable_roles(request.user):
        return Response({'error': 'You cannot create users with this role'}, status=status.HTTP_403_FORBIDDEN)
    user = serializer.save()
    create_audit_log(request, 'create', 'User', user.id, {'role': user.role}, object_name=user.username)
    logger.info(f"User {user.username} ({user.role}) created by {request.user.username}")
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail(request, pk):
    if not is_admin(request.user):
        return Response({'error': 'Only administrators can manage users'}, status=status.HTTP_403_FORBIDDEN)
    user = get_object_or_404(_visible_users(request.user), pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)

    if user.role not in _manageable_roles(request.user) and user.pk != request.user.pk:
        return Response({'error': 'You cannot modify this user'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        # Deactivate rather than delete so audit history keeps its user
        user.is_active = False
        user.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request, 'delete', 'User', user.id, object_name=user.username)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    new_role = serializer.validated_data.get('role', user.role)
    if new_role != user.role and new_role not in _manageable_roles(request.user):
        return Response({'error': 'You cannot assign this role'}, status=status.HTTP_403_FORBIDDEN)
    serializer.save()
    create_audit_log(request, 'update', 'User', user.id, dict(request.data), object_name=user.username)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with visible branches and capability flags"""
    user = request.user
    user_data = UserSerializer(user).data

    branch_ids = get_branch_ids_for_user(user)
    if branch_ids is None:
        branch_ids = list(Branch.objects.values_list('id', flat=True))
    user_data['branch_ids'] = branch_ids

    links = list(AdminBranch.objects.filter(admin=user)) if user.role in (User.ROLE_BRANCH_ADMIN, User.ROLE_ADMIN) else []
    user_data['branch_permissions'] = {link.branch_id: link.permissions for link in links}

    def granted(permission):
        return user.is_super_admin or any((link.permissions or {}).get(permission) for link in links)

    user_data['is_admin'] = user.is_admin_role
    user_data['is_super_admin'] = user.is_super_admin
    user_data['can_manage_branches'] = user.is_super_admin
    user_data['can_manage_billing'] = granted('finance')
    user_data['can_view_reports'] = granted('reports')
    return Response(user_data)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def setting_list_create(request):
    if not is_admin(request.user):
        return Response({'error': 'Only administrators can manage settings'}, status=status.HTTP_403_FORBIDDEN)
    if request.method == 'GET':
        return Response(SettingSerializer(Setting.objects.order_by('key'), many=True).data)

    if not request.user.is_super_admin:
        return Response({'error': 'Only super admins can create settings'}, status=status.HTTP_403_FORBIDDEN)
    serializer = SettingSerializer(data=request.data)
    if serializer.is_valid():
        setting = serializer.save()
        create_audit_log(request, 'create', 'Setting', setting.id, {'value': setting.value}, object_name=setting.key)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def setting_detail(request, pk):
    if not is_admin(request.user):
        return Response({'error': 'Only administrators can manage settings'}, status=status.HTTP_403_FORBIDDEN)
    setting = get_object_or_404(Setting, pk=pk)
    if request.method == 'GET':
        return Response(SettingSerializer(setting).data)

    if not request.user.is_super_admin:
        return Response({'error': 'Only super admins can change settings'}, status=status.HTTP_403_FORBIDDEN)
    if request.method == 'DELETE':
        create_audit_log(request, 'delete', 'Setting', setting.id, object_name=setting.key)
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        create_audit_log(request, 'update', 'Setting', setting.id, dict(request.data), object_name=setting.key)
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """Audit trail; non super admins only see their own entries"""
    queryset = AuditLog.objects.select_related('user')
    if not request.user.is_super_admin:
        queryset = queryset.filter(user=request.user)

    params = request.query_params
    if params.get('action'):
        queryset = queryset.filter(action=params['action'])
    if params.get('model'):
        queryset = queryset.filter(model_name=params['model'])
    if params.get('user'):
        queryset = queryset.filter(user_id=params['user'])
    date_from = parse_date(params.get('date_from', '') or '')
    date_to = parse_date(params.get('date_to', '') or '')
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    return Response(paginate(queryset.order_by('-created_at'), request, AuditLogSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    audit_log = get_object_or_404(AuditLog, pk=pk)
    if not request.user.is_super_admin and audit_log.user_id != request.user.id:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    return Response(AuditLogSerializer(audit_log).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Search clients, staff, bookings and invoices of the visible branches"""
    query = request.query_params.get('q', '').strip()
    if not query:
        return Response({'clients': [], 'staff': [], 'bookings': [], 'invoices': []})
    if request.user.role == User.ROLE_CLIENT:
        return Response({'error': 'Search is not available to clients'}, status=status.HTTP_403_FORBIDDEN)

    from medinfinite.billing.models import Invoice
    from medinfinite.billing.serializers import InvoiceListSerializer
    from medinfinite.bookings.models import Booking
    from medinfinite.bookings.serializers import BookingSerializer
    from medinfinite.clients.models import Client
    from medinfinite.clients.serializers import ClientListSerializer
    from medinfinite.staff.models import Staff
    from medinfinite.staff.serializers import StaffSerializer

    user = request.user
    results = {}

    clients = scope_queryset(Client.objects.all(), user).filter(
        Q(first_name__icontains=query) |
        Q(last_name__icontains=query) |
        Q(preferred_name__icontains=query) |
        Q(email__icontains=query) |
        Q(phone__icontains=query) |
        Q(postcode__icontains=query)
    )[:20]
    results['clients'] = ClientListSerializer(clients, many=True).data

    staff = scope_queryset(Staff.objects.all(), user).filter(
        Q(first_name__icontains=query) |
        Q(last_name__icontains=query) |
        Q(email__icontains=query) |
        Q(phone__icontains=query)
    )[:20]
    results['staff'] = StaffSerializer(staff, many=True).data

    bookings = scope_queryset(Booking.objects.select_related('client', 'staff', 'service'), user).filter(
        Q(client__first_name__icontains=query) |
        Q(client__last_name__icontains=query) |
        Q(staff__first_name__icontains=query) |
        Q(staff__last_name__icontains=query)
    ).order_by('-start_time')[:20]
    results['bookings'] = BookingSerializer(bookings, many=True).data

    if is_admin(user):
        invoices = scope_queryset(Invoice.objects.select_related('client'), user).filter(
            Q(invoice_number__icontains=query) |
            Q(client__last_name__icontains=query)
        )[:20]
        results['invoices'] = InvoiceListSerializer(invoices, many=True).data
    else:
        results['invoices'] = []

    return Response(results)
