from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cinereserve.api.deps import require_roles
from cinereserve.db.session import get_db
from cinereserve.models.user import User
from cinereserve.schemas.booking import BookingPage, booking_to_out
from cinereserve.services import booking_service, reservation_service

router = APIRouter(tags=["admin"])


@router.get("/admin/bookings", response_model=BookingPage)
def list_bookings(status: str | None = None, showtimeId: str | None = None, date: str | None = None,
                  page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                  db: Session = Depends(get_db), _: User = Depends(require_roles("admin"))):
    items, total = booking_service.list_bookings(db, status=status, showtime_id=showtimeId, date_str=date,
                                                 page=page, limit=limit)
    return BookingPage(items=[booking_to_out(b) for b in items], total=total, page=page, limit=limit)


@router.post("/admin/bookings/expire-stale")
def expire_stale(timeoutMinutes: int | None = Query(None, ge=0), db: Session = Depends(get_db),
                 _: User = Depends(require_roles("admin"))):
    return {"expired": reservation_service.expire_stale_bookings(db, timeout_minutes=timeoutMinutes)}


@router.post("/admin/bookings/complete-past")
def complete_past(db: Session = Depends(get_db), _: User = Depends(require_roles("admin"))):
    return {"completed": booking_service.complete_past_bookings(db)}
