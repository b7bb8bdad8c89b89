from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from travel_docs.core.db import db_session
from travel_docs.modules.documents.schemas import DocumentOut
from travel_docs.modules.documents.service import list_documents
from travel_docs.modules.trips.schemas import TripCreate, TripOut, TripUpdate
from travel_docs.modules.trips.service import (
    create_trip,
    delete_trip,
    get_trip,
    list_trips,
    update_trip,
)

router = APIRouter(tags=["trips"])


@router.post("/trips", response_model=TripOut)
def create_trip_endpoint(
    payload: TripCreate,
    session: Session = Depends(db_session),
) -> TripOut:
    trip = create_trip(
        session, title=payload.title, start_date=payload.start_date, end_date=payload.end_date
    )
    return TripOut.model_validate(trip, from_attributes=True)


@router.get("/trips", response_model=list[TripOut])
def list_trips_endpoint(session: Session = Depends(db_session)) -> list[TripOut]:
    return [TripOut.model_validate(t, from_attributes=True) for t in list_trips(session)]


@router.get("/trips/{trip_id}", response_model=TripOut)
def get_trip_endpoint(trip_id: int, session: Session = Depends(db_session)) -> TripOut:
    return TripOut.model_validate(get_trip(session, trip_id=trip_id), from_attributes=True)


@router.patch("/trips/{trip_id}", response_model=TripOut)
def update_trip_endpoint(
    trip_id: int,
    payload: TripUpdate,
    session: Session = Depends(db_session),
) -> TripOut:
    trip = get_trip(session, trip_id=trip_id)
    updated = update_trip(session, trip=trip, **payload.model_dump(exclude_unset=True))
    return TripOut.model_validate(updated, from_attributes=True)


@router.delete("/trips/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_trip_endpoint(trip_id: int, session: Session = Depends(db_session)) -> Response:
    trip = get_trip(session, trip_id=trip_id)
    delete_trip(session, trip=trip)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/trips/{trip_id}/documents", response_model=list[DocumentOut])
def list_trip_documents_endpoint(
    trip_id: int, session: Session = Depends(db_session)
) -> list[DocumentOut]:
    trip = get_trip(session, trip_id=trip_id)
    docs = list_documents(session, trip_id=trip.id)
    return [DocumentOut.model_validate(d, from_attributes=True) for d in docs]
