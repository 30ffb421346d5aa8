"""Audit log query API endpoints."""

import csv
import io
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from gsos.api.deps import require_permission
from gsos.core.access.models import Principal
from gsos.core.rbac.checker import PermissionChecker
from gsos.core.rbac.permissions import ACCESS_SENSITIVE_RECORDS

router = APIRouter(prefix="/audit-logs", tags=["audit"])


# Schemas
class AuditLogResponse(BaseModel):
    id: str
    timestamp: str
    operation: str
    resource_type: str
    resource_id: Optional[str]
    subject_id: Optional[str] = None
    principal_id: Optional[str]
    principal_role: Optional[str]
    granted: bool
    reason: str
    ip_address: Optional[str]
    data_classification: str
    permission: Optional[str]
    severity: str
    metadata: dict
    retain_until: Optional[str]


class AuditLogListResponse(BaseModel):
    items: List[AuditLogResponse]
    total: int
    page: int
    per_page: int


EXPORT_FIELDS = [
    "id",
    "timestamp",
    "operation",
    "resource_type",
    "resource_id",
    "principal_id",
    "principal_role",
    "granted",
    "reason",
    "ip_address",
    "data_classification",
    "permission",
    "severity",
]


def _to_response(record: dict, principal: Principal) -> AuditLogResponse:
    # Real student identifiers only for holders of the sensitive-records grant
    can_see_subject = PermissionChecker.for_principal(principal).has_permission(ACCESS_SENSITIVE_RECORDS)
    return AuditLogResponse(
        **{k: v for k, v in record.items() if k in AuditLogResponse.model_fields and k != "subject_id"},
        subject_id=record.get("subject_id") if can_see_subject else None,
    )


# Upper bound on rows in one CSV export
EXPORT_LIMIT = 10000


def _sink(request: Request):
    return request.app.state.audit_sink


# Endpoints
@router.get("", response_model=AuditLogListResponse)
def list_audit_logs(
    request: Request,
    principal: Principal = Depends(require_permission("audit_logs:read")),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    principal_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    granted: Optional[bool] = None,
    data_classification: Optional[str] = None,
):
    """
    List audit entries, newest first.

    Supports filtering by principal, resource type, verdict and classification.
    """
    sink = _sink(request)
    filters = dict(
        principal_id=principal_id,
        resource_type=resource_type,
        granted=granted,
        data_classification=data_classification,
    )
    records = sink.query(**filters, limit=per_page, offset=(page - 1) * per_page)
    return AuditLogListResponse(
        items=[_to_response(r, principal) for r in records],
        total=sink.count(**filters),
        page=page,
        per_page=per_page,
    )


@router.get("/export/csv")
def export_audit_logs_csv(
    request: Request,
    principal: Principal = Depends(require_permission("audit_logs:export")),
    principal_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    granted: Optional[bool] = None,
):
    """Export audit entries to CSV (without protected subject ids)."""
    records = _sink(request).query(
        principal_id=principal_id, resource_type=resource_type, granted=granted, limit=EXPORT_LIMIT,
    )

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_FIELDS, extrasaction="ignore")
    writer.writeheader()
    for record in records:
        writer.writerow(record)
    output.seek(0)

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=audit_logs.csv"},
    )


@router.get("/{entry_id}", response_model=AuditLogResponse)
def get_audit_log(
    entry_id: str,
    request: Request,
    principal: Principal = Depends(require_permission("audit_logs:read")),
):
    """Get a specific audit log entry."""
    record = _sink(request).get(entry_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Audit log not found")
    return _to_response(record, principal)
