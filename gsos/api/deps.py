"""FastAPI dependencies for principals and access checks.

Token verification happens upstream; the identity layer places a validated
``Principal`` on ``request.state.principal``. Denials surface to clients
only as a generic 403; the reason is kept in the audit trail.
"""

import logging
import re
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from gsos.api.middleware.rate_limit import get_client_ip
from gsos.core.access.engine import AccessDecisionEngine
from gsos.core.access.models import AccessDecision, Operation, Principal, ResourceDescriptor, ResourceType
from gsos.core.exceptions import AuditPersistenceFailure
from gsos.core.rbac.checker import PermissionChecker
from gsos.core.rbac.permissions import Permission

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access denied"
INTERNAL_ERROR = "Internal server error"


def get_principal(request: Request) -> Principal:
    """Get the authenticated principal for the request."""
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, Principal):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def get_access_engine(request: Request) -> AccessDecisionEngine:
    return request.app.state.access_engine


def require_permission(permission: str):
    """Dependency factory: the principal must hold ``permission``."""
    required = Permission.from_string(permission)

    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if not PermissionChecker.for_principal(principal).has_permission(required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACCESS_DENIED)
        return principal

    return dependency


def _route_template(request: Request) -> str:
    """Request path with each path parameter replaced by ``{name}``.

    Built from the concrete path so router prefixes are always included and
    identifiers stay out of the audit metadata. Parameters are matched from
    the right, so a value that repeats an earlier literal segment is safe.
    """
    template = request.url.path
    for name, value in reversed(list(request.path_params.items())):
        pattern = r"(?<=/)" + re.escape(str(value)) + r"(?=/|$)"
        matches = list(re.finditer(pattern, template))
        if matches:
            last = matches[-1]
            template = f"{template[:last.start()]}{{{name}}}{template[last.end():]}"
    return template


class AccessGuard:
    """
    Route dependency that runs the access decision engine.

    The resource descriptor is built from path parameters:

        @router.get("/students/{student_id}")
        def get_student(
            decision: AccessDecision = Depends(
                AccessGuard(ResourceType.STUDENT_DATA, Operation.READ, owner_param="student_id")
            ),
        ):
            ...
    """

    def __init__(
        self,
        resource_type: ResourceType,
        operation: Operation,
        *,
        id_param: Optional[str] = None,
        owner_param: Optional[str] = None,
        school_param: Optional[str] = None,
    ):
        self.resource_type = ResourceType(resource_type)
        self.operation = Operation(operation)
        self.id_param = id_param
        self.owner_param = owner_param
        self.school_param = school_param

    def _descriptor(self, request: Request) -> ResourceDescriptor:
        params = request.path_params
        id_param = self.id_param or self.owner_param
        return ResourceDescriptor(
            resource_type=self.resource_type,
            resource_id=params.get(id_param) if id_param else None,
            owner_student_id=params.get(self.owner_param) if self.owner_param else None,
            school_id=params.get(self.school_param) if self.school_param else None,
        )

    def __call__(
        self,
        request: Request,
        principal: Principal = Depends(get_principal),
        engine: AccessDecisionEngine = Depends(get_access_engine),
    ) -> AccessDecision:
        try:
            decision = engine.decide(
                principal,
                self._descriptor(request),
                self.operation,
                ip_address=get_client_ip(request),
                metadata={"method": request.method, "route": _route_template(request)},
            )
        except AuditPersistenceFailure as e:
            logger.error("Refusing request: audit write failed (%s)", e.classification)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)

        if not decision.granted:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACCESS_DENIED)
        return decision
