"""Actor resolution and read-visibility rules."""

from typing import Union
from uuid import UUID

from subsidy.core.collaborators import IdentityProvider, UserInfo
from subsidy.core.exceptions import AuthorizationError
from subsidy.core.process.states import ROLE_VISIBLE_STATES, ProcessState
from subsidy.core.roles import Role, coerce_role


def resolve_actor(
    identity: IdentityProvider,
    actor_id: UUID,
    claimed_role: Union[Role, str, None] = None,
) -> UserInfo:
    """Look up the acting user and make sure they may act at all.

    Raises:
        AuthorizationError: Unknown or inactive user, or a claimed role that
            differs from the role on record
    """
    user = identity.get_user(actor_id)
    if user is None:
        raise AuthorizationError("Unknown user", details={"user_id": str(actor_id)})
    if not user.active:
        raise AuthorizationError("User is inactive", details={"user_id": str(actor_id)})

    if claimed_role is not None:
        try:
            role = coerce_role(claimed_role)
        except ValueError:
            raise AuthorizationError(f"Unknown role: {claimed_role}")
        if role != user.role:
            raise AuthorizationError(
                f"Role {role.value} does not match the role on record",
                details={"role": user.role.value},
            )
    return user


def can_view(user: UserInfo, process) -> bool:
    """Visibility rule for a single process row.

    Beneficiaries and landlords see processes they are party to; the
    validator sees everything; the remaining staff roles see processes that
    reached their stage of the workflow.
    """
    if user.role == Role.BENEFICIARY:
        return process.beneficiary_id == user.id
    if user.role == Role.LANDLORD:
        return process.landlord_id is not None and process.landlord_id == user.id
    if user.role == Role.VALIDATOR:
        return True

    visible = ROLE_VISIBLE_STATES.get(user.role)
    if visible is None:
        return False
    return ProcessState(process.state) in visible


def ensure_can_view(user: UserInfo, process) -> None:
    if not can_view(user, process):
        raise AuthorizationError("Not allowed to view this process")


def is_owner(user: UserInfo, process) -> bool:
    return user.role == Role.BENEFICIARY and process.beneficiary_id == user.id
