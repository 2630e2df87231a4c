from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class ShowtimeCreate(BaseModel):
    movieId: str
    theaterId: str
    hallName: str
    date: str  # YYYY-MM-DD
    startTime: str  # HH:MM
    durationMinutes: Optional[int] = None  # defaults to the movie's duration
    basePrice: int = Field(gt=0)


class ShowtimeReprice(BaseModel):
    basePrice: int = Field(gt=0)


class ShowtimeOut(BaseModel):
    id: str
    movieId: str
    theaterId: str
    hallName: str
    date: str
    startTime: str
    endTime: str
    basePrice: int
    prices: Dict[str, int]
    availableSeats: Dict[str, int]
    status: str
    isActive: bool


class ShowtimePage(BaseModel):
    items: List[ShowtimeOut]
    total: int
    page: int
    limit: int


def showtime_to_out(st) -> ShowtimeOut:
    return ShowtimeOut(
        id=st.id,
        movieId=st.movie_id,
        theaterId=st.theater_id,
        hallName=st.hall_name,
        date=st.date_str,
        startTime=st.start,
        endTime=st.end,
        basePrice=getattr(st, "base_price", 0) or 0,
        prices=st.price_table(),
        availableSeats=st.available_table(),
        status=st.status,
        isActive=bool(st.is_active),
    )
