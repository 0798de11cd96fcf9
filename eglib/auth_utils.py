"""Capability checks against Cognito identity claims.

Claims carry an ``OrganizationAccess`` attribute: a JSON string mapping
organization ids to access records::

    {
        "org-1": {
            "Status": "Active",
            "OrganizationAdmin": true,
            "LaboratoryAccess": {
                "lab-1": {"Status": "Active", "LabManager": false, "LabTechnician": true}
            }
        }
    }

Only ``Active`` organization and laboratory entries grant anything.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

LOGGER = logging.getLogger("easygenomics.auth_utils")

ACTIVE = "Active"


def get_request_claims(event: Mapping[str, Any]) -> Dict[str, Any]:
    """Extract Cognito authorizer claims from an API Gateway event."""
    request_context = event.get("requestContext") or {}
    authorizer = request_context.get("authorizer") or {}
    claims = authorizer.get("claims") or {}
    return dict(claims)


def parse_organization_access(claims: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Decode the OrganizationAccess claim; malformed values grant nothing."""
    if not claims:
        return {}
    raw = claims.get("OrganizationAccess")
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        LOGGER.warning("Ignoring malformed OrganizationAccess claim")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _active_organization(claims: Optional[Mapping[str, Any]], organization_id: str) -> Optional[Dict[str, Any]]:
    access = parse_organization_access(claims).get(organization_id)
    if not isinstance(access, dict) or access.get("Status") != ACTIVE:
        return None
    return access


def _active_laboratory(
    claims: Optional[Mapping[str, Any]], organization_id: str, laboratory_id: str
) -> Optional[Dict[str, Any]]:
    organization = _active_organization(claims, organization_id)
    if organization is None:
        return None
    laboratories = organization.get("LaboratoryAccess") or {}
    access = laboratories.get(laboratory_id) if isinstance(laboratories, dict) else None
    if not isinstance(access, dict) or access.get("Status") != ACTIVE:
        return None
    return access


def validate_organization_admin_access(claims: Optional[Mapping[str, Any]], organization_id: str) -> bool:
    """True when the caller administers the organization."""
    organization = _active_organization(claims, organization_id)
    return bool(organization and organization.get("OrganizationAdmin") is True)


def validate_laboratory_manager_access(
    claims: Optional[Mapping[str, Any]], organization_id: str, laboratory_id: str
) -> bool:
    """True when the caller manages the laboratory."""
    laboratory = _active_laboratory(claims, organization_id, laboratory_id)
    return bool(laboratory and laboratory.get("LabManager") is True)


def validate_laboratory_technician_access(
    claims: Optional[Mapping[str, Any]], organization_id: str, laboratory_id: str
) -> bool:
    """True when the caller is a technician in the laboratory."""
    laboratory = _active_laboratory(claims, organization_id, laboratory_id)
    return bool(laboratory and laboratory.get("LabTechnician") is True)


def can_access_laboratory_files(
    claims: Optional[Mapping[str, Any]], organization_id: str, laboratory_id: str
) -> bool:
    """Organization admins and laboratory members may browse laboratory files."""
    return (
        validate_organization_admin_access(claims, organization_id)
        or validate_laboratory_manager_access(claims, organization_id, laboratory_id)
        or validate_laboratory_technician_access(claims, organization_id, laboratory_id)
    )
