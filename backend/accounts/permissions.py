# accounts/permissions.py
from __future__ import annotations

from typing import Iterable, Optional

from django.contrib.auth import get_user_model
from django.db import transaction

from accounts.models import CompanyMembership, MembershipPermission
from accounts.permission_defaults import ROLE_DEFAULTS, all_permission_codes

User = get_user_model()


@transaction.atomic
def grant_role_defaults(
    membership: CompanyMembership,
    granted_by: Optional[User] = None,
    overwrite: bool = False,
) -> int:
    """
    Grant default permissions for the membership.role.

    - Idempotent by default: only grants missing codes.
    - If overwrite=True: first removes existing permissions then grants defaults.
    Returns number of permissions newly granted.
    """
    default_codes = ROLE_DEFAULTS.get(membership.role, set())

    if overwrite:
        MembershipPermission.objects.filter(membership=membership).delete()

    already = set(
        MembershipPermission.objects.filter(membership=membership).values_list("code", flat=True)
    )
    missing = sorted(default_codes - already)
    MembershipPermission.objects.bulk_create(
        [
            MembershipPermission(membership=membership, code=code, granted_by=granted_by)
            for code in missing
        ],
        ignore_conflicts=True,
    )
    return len(missing)


@transaction.atomic
def grant_permissions(
    membership: CompanyMembership,
    codes: Iterable[str],
    granted_by: Optional[User] = None,
) -> int:
    """Grant explicit permission codes. Unknown codes raise ValueError."""
    codes = set(codes)
    unknown = codes - all_permission_codes()
    if unknown:
        raise ValueError(f"Unknown permission codes: {', '.join(sorted(unknown))}")

    created = 0
    for code in sorted(codes):
        _, was_created = MembershipPermission.objects.get_or_create(
            membership=membership,
            code=code,
            defaults={"granted_by": granted_by},
        )
        created += int(was_created)
    return created


def revoke_permissions(membership: CompanyMembership, codes: Iterable[str]) -> int:
    deleted, _ = MembershipPermission.objects.filter(
        membership=membership,
        code__in=list(codes),
    ).delete()
    return deleted
