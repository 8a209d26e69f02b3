"""Scheduling access endpoints."""

from fastapi import APIRouter, status

from quiro_agenda.dependencies import CurrentProfessionalId, SchedulingServiceDep
from quiro_agenda.schemas.scheduling_access import SchedulingAccessStatus

router = APIRouter()


@router.get(
    "/scheduling-access",
    response_model=SchedulingAccessStatus,
    status_code=status.HTTP_200_OK,
    tags=["Scheduling Access"],
    summary="Current scheduling access",
)
async def get_scheduling_access(
    professional_id: CurrentProfessionalId,
    service: SchedulingServiceDep,
) -> SchedulingAccessStatus:
    """
    Report whether the professional may use the agenda right now.

    Returns:
        Access flag with the grant's expiry and reason when active
    """
    return await service.access_status(professional_id)
