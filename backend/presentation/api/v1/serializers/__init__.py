"""
Serializers Package.

All API serializers for the PMMIS system.
"""

from .base import BaseModelSerializer, UserMinimalSerializer

from .users import (
    RoleSerializer,
    RoleMinimalSerializer,
    UserRoleSerializer,
    UserListSerializer,
    UserDetailSerializer,
    UserCreateSerializer,
    ChangePasswordSerializer,
    LoginSerializer,
    UserProfileSerializer,
)

from .project import (
    ProjectListSerializer,
    ProjectDetailSerializer,
)

from .contracts import (
    ContractorSerializer,
    ContractListSerializer,
    ContractDetailSerializer,
    ContractAmendmentSerializer,
    ContractMilestoneSerializer,
)

from .work_progress import (
    WorkProgressListSerializer,
    WorkProgressDetailSerializer,
    WorkProgressWriteSerializer,
)

from .payments import PaymentSerializer


__all__ = [
    # Base
    'BaseModelSerializer',
    'UserMinimalSerializer',

    # Users
    'RoleSerializer',
    'RoleMinimalSerializer',
    'UserRoleSerializer',
    'UserListSerializer',
    'UserDetailSerializer',
    'UserCreateSerializer',
    'ChangePasswordSerializer',
    'LoginSerializer',
    'UserProfileSerializer',

    # Projects
    'ProjectListSerializer',
    'ProjectDetailSerializer',

    # Contracts
    'ContractorSerializer',
    'ContractListSerializer',
    'ContractDetailSerializer',
    'ContractAmendmentSerializer',
    'ContractMilestoneSerializer',

    # Work progress & payments
    'WorkProgressListSerializer',
    'WorkProgressDetailSerializer',
    'WorkProgressWriteSerializer',
    'PaymentSerializer',
]
