from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cinereserve.api.deps import require_roles
from cinereserve.core.errors import ForbiddenError
from cinereserve.db.session import get_db
from cinereserve.models.theater import Theater
from cinereserve.models.user import User
from cinereserve.schemas.showtime import ShowtimeCreate, ShowtimeOut, ShowtimePage, ShowtimeReprice, showtime_to_out
from cinereserve.services import showtime_service
from cinereserve.services.showtime_source import resolve_showtime, sandbox_showtimes

router = APIRouter(tags=["showtimes"])


def _ensure_manages(db: Session, theater_id: str, user: User) -> None:
    if user.role == "admin":
        return
    theater = db.get(Theater, theater_id)
    if not theater or theater.owner_user_id != user.id:
        raise ForbiddenError("Not allowed to manage this theater")


@router.get("/showtimes", response_model=ShowtimePage)
def list_showtimes(
    movieId: str | None = None,
    theaterId: str | None = None,
    date: str | None = None,
    city: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    items, total = showtime_service.list_showtimes(db, movie_id=movieId, theater_id=theaterId,
                                                   date_str=date, city=city, page=page, limit=limit)
    return ShowtimePage(items=[showtime_to_out(s) for s in items], total=total, page=page, limit=limit)


@router.get("/showtimes/sandbox", response_model=list[ShowtimeOut])
def list_sandbox_showtimes():
    return [showtime_to_out(s) for s in sandbox_showtimes.all()]


@router.get("/showtimes/{showtime_id}", response_model=ShowtimeOut)
def get_showtime(showtime_id: str, db: Session = Depends(get_db)):
    return showtime_to_out(resolve_showtime(db, showtime_id))


@router.get("/showtimes/{showtime_id}/seatmap")
def seat_map(showtime_id: str, db: Session = Depends(get_db)):
    return showtime_service.seat_map(db, showtime_id)


@router.post("/showtimes", response_model=ShowtimeOut, status_code=201)
def create_showtime(body: ShowtimeCreate, db: Session = Depends(get_db),
                    user: User = Depends(require_roles("theater_owner", "admin"))):
    _ensure_manages(db, body.theaterId, user)
    st = showtime_service.create_showtime(
        db,
        movie_id=body.movieId,
        theater_id=body.theaterId,
        hall_name=body.hallName.strip(),
        date_str=body.date,
        start=body.startTime,
        duration_minutes=body.durationMinutes,
        base_price=body.basePrice,
        actor=user.id,
    )
    return showtime_to_out(st)


@router.patch("/showtimes/{showtime_id}/price", response_model=ShowtimeOut)
def reprice_showtime(showtime_id: str, body: ShowtimeReprice, db: Session = Depends(get_db),
                     user: User = Depends(require_roles("theater_owner", "admin"))):
    _ensure_manages(db, showtime_service.get_showtime(db, showtime_id).theater_id, user)
    return showtime_to_out(showtime_service.reprice_showtime(db, showtime_id, body.basePrice, actor=user.id))


@router.delete("/showtimes/{showtime_id}", response_model=ShowtimeOut)
def cancel_showtime(showtime_id: str, db: Session = Depends(get_db),
                    user: User = Depends(require_roles("theater_owner", "admin"))):
    _ensure_manages(db, showtime_service.get_showtime(db, showtime_id).theater_id, user)
    return showtime_to_out(showtime_service.cancel_showtime(db, showtime_id, actor=user.id))
