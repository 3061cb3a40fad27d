"""
hr_workflow.services.collaborators -- Ports to the systems around the kernel.

Responsibility:
    Declares the two collaborators the kernel calls out to: an audit sink
    that records every attempted mutation, and an identity provider that
    confirms the role an actor claims.  Ships the default implementations
    used when the host application supplies none.

Architecture position:
    Kernel > Services.  May import from domain/ and logging_config.

Failure modes:
    - Audit sink errors propagate from ``log``; callers in the kernel catch
      and log them so an audit outage never undoes a committed transition.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable
from uuid import UUID

from hr_workflow.domain.records import Role
from hr_workflow.exceptions import PermissionDeniedError
from hr_workflow.logging_config import get_logger

audit_logger = get_logger("audit")


@runtime_checkable
class AuditSink(Protocol):
    """Receives one entry per attempted mutation, successful or not."""

    def log(
        self,
        actor_id: UUID,
        action: str,
        resource_type: str,
        resource_id: UUID,
        details: Mapping[str, Any],
        success: bool,
    ) -> None: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Resolves the role an actor actually holds."""

    def role_of(self, actor_id: UUID) -> Role | None: ...


class LoggingAuditSink:
    """Audit sink writing one structured line per entry to ``hr_workflow.audit``."""

    def log(
        self,
        actor_id: UUID,
        action: str,
        resource_type: str,
        resource_id: UUID,
        details: Mapping[str, Any],
        success: bool,
    ) -> None:
        audit_logger.info(
            "audit_entry",
            extra={
                "audit_actor_id": str(actor_id),
                "audit_action": action,
                "resource_type": resource_type,
                "resource_id": str(resource_id),
                "details": dict(details),
                "success": success,
            },
        )


class StaticIdentityProvider:
    """Identity provider backed by a fixed actor -> role mapping.

    Suitable for scripts and tests; production hosts plug in their
    directory service through the ``IdentityProvider`` protocol.
    """

    def __init__(self, roles: Mapping[UUID, Role | str] | None = None):
        self._roles: dict[UUID, Role] = {
            actor: Role(role) for actor, role in (roles or {}).items()
        }

    def assign(self, actor_id: UUID, role: Role | str) -> None:
        self._roles[actor_id] = Role(role)

    def role_of(self, actor_id: UUID) -> Role | None:
        return self._roles.get(actor_id)


def verify_role_claim(
    identity: IdentityProvider,
    actor_id: UUID,
    actor_role: Role | str,
) -> Role:
    """Return the claimed role if the identity provider confirms it.

    Raises:
        PermissionDeniedError: The actor is unknown or holds another role.
    """
    try:
        claimed = Role(actor_role)
    except ValueError:
        raise PermissionDeniedError(str(actor_id), str(actor_role), "unknown role")
    actual = identity.role_of(actor_id)
    if actual != claimed:
        raise PermissionDeniedError(
            str(actor_id),
            claimed.value,
            "claimed role does not match the actor's role",
        )
    return claimed


def emit_audit(
    sink: AuditSink,
    actor_id: UUID,
    action: str,
    resource_type: str,
    resource_id: UUID,
    details: Mapping[str, Any],
    success: bool,
) -> None:
    """Send one audit entry; sink failures are logged and never raised."""
    try:
        sink.log(actor_id, action, resource_type, resource_id, details, success)
    except Exception:
        audit_logger.warning(
            "audit_sink_failed",
            extra={
                "audit_action": action,
                "resource_id": str(resource_id),
                "success": success,
            },
            exc_info=True,
        )
