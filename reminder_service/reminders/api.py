from typing import List
from fastapi import APIRouter, Depends, HTTPException, Response

from .deps import get_service
from .exceptions import ReminderConflictError, ReminderNotFoundError
from .schemas import (
    NotificationTestResult,
    ReminderCreate,
    ReminderRead,
    ReminderToggle,
    ReminderToggleResult,
    RunReportRead,
    SubscriptionCreate,
    SubscriptionRead,
)
from .service import ReminderService


router = APIRouter()


@router.get("/health")
def health(service: ReminderService = Depends(get_service)):
    service.list_subscriptions()
    return {"status": "ok"}


@router.post("/", response_model=ReminderRead, status_code=201)
def create_reminder_endpoint(payload: ReminderCreate, service: ReminderService = Depends(get_service)):
    return ReminderRead.from_data(service.create_reminder(payload))


@router.get("/", response_model=List[ReminderRead])
def list_reminders_endpoint(service: ReminderService = Depends(get_service)):
    return [ReminderRead.from_data(r) for r in service.list_reminders()]


# Subscription routes are declared before /{reminder_id} so the path is not
# captured as a reminder id.
@router.post("/subscriptions", response_model=SubscriptionRead, status_code=201)
def subscribe_endpoint(payload: SubscriptionCreate, service: ReminderService = Depends(get_service)):
    return SubscriptionRead.from_data(service.register_subscription(payload))


@router.get("/subscriptions", response_model=List[SubscriptionRead])
def list_subscriptions_endpoint(service: ReminderService = Depends(get_service)):
    return [SubscriptionRead.from_data(s) for s in service.list_subscriptions()]


@router.delete("/subscriptions", status_code=204)
def unsubscribe_endpoint(endpoint: str, service: ReminderService = Depends(get_service)):
    if not service.remove_subscription(endpoint):
        raise HTTPException(status_code=404, detail="Subscription not found")
    return Response(status_code=204)


@router.post("/run", response_model=RunReportRead)
def run_scheduler_endpoint(service: ReminderService = Depends(get_service)):
    """Run one scheduler pass now and return its report."""
    return RunReportRead.from_report(service.run_now())


@router.post("/test-notification", response_model=NotificationTestResult)
def test_notification_endpoint(service: ReminderService = Depends(get_service)):
    if not service.list_subscriptions():
        raise HTTPException(status_code=400, detail="No subscriptions registered")
    return NotificationTestResult.from_dispatch(service.send_test_notification())


@router.get("/{reminder_id}", response_model=ReminderRead)
def get_reminder_endpoint(reminder_id: str, service: ReminderService = Depends(get_service)):
    try:
        return ReminderRead.from_data(service.get_reminder(reminder_id))
    except ReminderNotFoundError:
        raise HTTPException(status_code=404, detail="Reminder not found")


@router.delete("/{reminder_id}", status_code=204)
def delete_reminder_endpoint(reminder_id: str, service: ReminderService = Depends(get_service)):
    try:
        service.delete_reminder(reminder_id)
    except ReminderNotFoundError:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return Response(status_code=204)


@router.patch("/{reminder_id}/toggle", response_model=ReminderToggleResult)
def toggle_reminder_endpoint(
    reminder_id: str,
    payload: ReminderToggle,
    service: ReminderService = Depends(get_service),
):
    """Activate or deactivate a reminder; activation also runs a scheduler pass."""
    try:
        reminder, report = service.set_active(reminder_id, payload.is_active)
    except ReminderNotFoundError:
        raise HTTPException(status_code=404, detail="Reminder not found")
    except ReminderConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ReminderToggleResult(
        reminder=ReminderRead.from_data(reminder),
        run=RunReportRead.from_report(report) if report is not None else None,
    )
