"""Appointment endpoints."""

from datetime import date

from fastapi import APIRouter, Query, status

from quiro_agenda.dependencies import CurrentProfessionalId, SchedulingServiceDep
from quiro_agenda.schemas.appointments import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    BookingResult,
    RecurringAppointmentCreate,
    RecurringBookingResult,
)

router = APIRouter()


@router.post(
    "",
    response_model=BookingResult,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book a single appointment",
)
async def book_appointment(
    data: AppointmentCreate,
    professional_id: CurrentProfessionalId,
    service: SchedulingServiceDep,
) -> BookingResult:
    """
    Book one appointment at a local date/time.

    Args:
        data: Booking request
        professional_id: Authenticated professional
        service: Scheduling service

    Returns:
        New appointment id and its UTC start
    """
    return await service.book_single(professional_id, data)


@router.post(
    "/recurring",
    response_model=RecurringBookingResult,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book a recurring series",
)
async def book_recurring_appointments(
    data: RecurringAppointmentCreate,
    professional_id: CurrentProfessionalId,
    service: SchedulingServiceDep,
) -> RecurringBookingResult:
    """
    Book every occurrence of a recurrence rule, or none of them.

    Args:
        data: Recurring booking request
        professional_id: Authenticated professional
        service: Scheduling service

    Returns:
        Recurrence group id and the created occurrences
    """
    return await service.book_recurring(professional_id, data)


@router.get(
    "/agenda",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List the agenda",
)
async def list_agenda(
    professional_id: CurrentProfessionalId,
    service: SchedulingServiceDep,
    from_date: date = Query(..., description="First local day (inclusive)"),
    to_date: date = Query(..., description="Last local day (inclusive)"),
    include_cancelled: bool = Query(False),
) -> list[AppointmentResponse]:
    """
    List appointments whose start falls within the local date range.

    Args:
        professional_id: Authenticated professional
        service: Scheduling service
        from_date: First local day
        to_date: Last local day
        include_cancelled: Include cancelled appointments

    Returns:
        Appointments ordered by start
    """
    return await service.list_agenda(
        professional_id,
        from_date,
        to_date,
        include_cancelled=include_cancelled,
    )


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: int,
    professional_id: CurrentProfessionalId,
    service: SchedulingServiceDep,
    data: AppointmentCancel | None = None,
) -> AppointmentResponse:
    """
    Cancel a scheduled appointment.

    Args:
        appointment_id: Appointment ID
        professional_id: Authenticated professional
        service: Scheduling service
        data: Optional cancellation reason

    Returns:
        Cancelled appointment
    """
    reason = data.reason if data else None
    return await service.cancel(appointment_id, professional_id, reason)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: int,
    professional_id: CurrentProfessionalId,
    service: SchedulingServiceDep,
) -> AppointmentResponse:
    """Mark a scheduled appointment as completed."""
    return await service.complete(appointment_id, professional_id)


@router.patch(
    "/{appointment_id}/schedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reschedule or edit appointment",
)
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    professional_id: CurrentProfessionalId,
    service: SchedulingServiceDep,
) -> AppointmentResponse:
    """
    Move a scheduled appointment and/or edit its notes, value or location.

    Args:
        appointment_id: Appointment ID
        data: New local date and time and/or edited fields
        professional_id: Authenticated professional
        service: Scheduling service

    Returns:
        Rescheduled appointment
    """
    return await service.reschedule(appointment_id, professional_id, data)
