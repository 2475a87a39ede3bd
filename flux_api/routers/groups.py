"""
Expense group endpoints.
"""
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..models.api_responses import ERROR_RESPONSES, ok
from ..models.auth import AuthUser
from ..models.group import (
    GroupCreateRequest,
    GroupUpdateRequest,
    JoinGroupRequest,
    MemberAddRequest,
    MemberUpdateRequest,
)
from ..models.settlement import SettlementCreateRequest
from ..services import GroupService, SettlementService
from ..utils.dependencies import get_current_user, get_group_service, get_settlement_service

router = APIRouter()

GROUP_RESPONSES = {
    **ERROR_RESPONSES,
    403: {"description": "Caller lacks the required group role"},
    404: {"description": "Group or member not found"},
}


@router.get("", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def list_groups(
    include_archived: bool = Query(False, description="Include inactive groups"),
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    """List the groups the caller is an active member of."""
    groups = await group_service.list_groups(current_user.id, include_archived=include_archived)
    return ok({"groups": groups, "total": len(groups)})


@router.post("", status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
async def create_group(
    request: GroupCreateRequest,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    """Create a group; the caller becomes its admin."""
    group = await group_service.create_group(current_user.id, request)
    return ok({"group": group}, "Group created successfully")


@router.post(
    "/join",
    status_code=status.HTTP_200_OK,
    responses={**ERROR_RESPONSES, 404: {"description": "Invalid join code or group not found"}}
)
async def join_group(
    request: JoinGroupRequest,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    """Join a group with its shareable join code."""
    result = await group_service.join_group(current_user.id, request.join_code)
    return ok(result, "Successfully joined group")


@router.get("/{group_id}", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def get_group(
    group_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    """Group details with members and balances."""
    details = await group_service.get_group_details(str(group_id), current_user.id)
    return ok(details)


@router.put("/{group_id}", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def update_group(
    group_id: UUID,
    request: GroupUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    """Update group settings; `is_active: false` archives the group. Admins only."""
    group = await group_service.update_group(str(group_id), current_user.id, request)
    return ok({"group": group}, "Group updated successfully")


@router.delete("/{group_id}", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def archive_group(
    group_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    """Archive a group. Admins only."""
    await group_service.archive_group(str(group_id), current_user.id)
    return ok(message="Group deleted successfully")


@router.get("/{group_id}/join-code", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def get_join_code(
    group_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    join_code = await group_service.get_join_code(str(group_id), current_user.id)
    return ok({"join_code": join_code})


@router.post("/{group_id}/join-code", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def regenerate_join_code(
    group_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    """Issue a new join code; the old one stops working. Admins only."""
    join_code = await group_service.regenerate_join_code(str(group_id), current_user.id)
    return ok({"join_code": join_code}, "Join code regenerated successfully")


@router.get("/{group_id}/members", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def list_members(
    group_id: UUID,
    include_inactive: bool = Query(False, description="Include members who left"),
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    members = await group_service.list_members(
        str(group_id), current_user.id, include_inactive=include_inactive
    )
    return ok({"members": members, "total": len(members)})


@router.post("/{group_id}/members", status_code=status.HTTP_201_CREATED, responses=GROUP_RESPONSES)
async def add_member(
    group_id: UUID,
    request: MemberAddRequest,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    """Add a registered user to the group; only admins may add admins."""
    member = await group_service.add_member(str(group_id), current_user.id, request)
    return ok({"member": member}, "Member added successfully")


@router.get("/{group_id}/members/{member_id}", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def get_member(
    group_id: UUID,
    member_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    member = await group_service.get_member(str(group_id), current_user.id, str(member_id))
    return ok({"member": member})


@router.put("/{group_id}/members/{member_id}", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def update_member(
    group_id: UUID,
    member_id: UUID,
    request: MemberUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    member = await group_service.update_member(str(group_id), current_user.id, str(member_id), request)
    return ok({"member": member}, "Member updated successfully")


@router.delete("/{group_id}/members/{member_id}", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def remove_member(
    group_id: UUID,
    member_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service)
) -> Dict[str, Any]:
    """Remove a member, or leave the group when `member_id` is the caller."""
    await group_service.remove_member(str(group_id), current_user.id, str(member_id))
    if str(member_id) == current_user.id:
        return ok(message="You have left the group")
    return ok(message="Member removed successfully")


@router.get("/{group_id}/settlements", status_code=status.HTTP_200_OK, responses=GROUP_RESPONSES)
async def list_group_settlements(
    group_id: UUID,
    current_user: AuthUser = Depends(get_current_user),
    settlement_service: SettlementService = Depends(get_settlement_service)
) -> Dict[str, Any]:
    payments = await settlement_service.list_group_payments(str(group_id), current_user.id)
    return ok({"settlements": payments, "total": len(payments)})


@router.post("/{group_id}/settlements", status_code=status.HTTP_201_CREATED, responses=GROUP_RESPONSES)
async def create_group_settlement(
    group_id: UUID,
    request: SettlementCreateRequest,
    current_user: AuthUser = Depends(get_current_user),
    settlement_service: SettlementService = Depends(get_settlement_service)
) -> Dict[str, Any]:
    """Record a payment between two members and return the updated balances."""
    result = await settlement_service.record_group_payment(str(group_id), current_user.id, request)
    return ok(result, "Settlement recorded successfully")
