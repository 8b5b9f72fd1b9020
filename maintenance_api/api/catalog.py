from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from maintenance_api.api.deps import admin_only, get_current_user
from maintenance_api.core.db import get_db
from maintenance_api.models.catalog import User
from maintenance_api.models.enums import Role
from maintenance_api.models.ticket import Ticket
from maintenance_api.schemas.catalog import (
    BuildingCreate,
    BuildingResponse,
    CategoryCreate,
    CategoryResponse,
    RoomCreate,
    RoomResponse,
    UserCreate,
    UserResponse,
)
from maintenance_api.services.catalog import CatalogService

router = APIRouter(tags=["Catalog"])


def _building_out(building, active_counts) -> BuildingResponse:
    return BuildingResponse.model_validate(building).model_copy(
        update={"active_ticket_count": active_counts.get(building.id, 0)}
    )


def _room_out(room, active_counts) -> RoomResponse:
    return RoomResponse.model_validate(room).model_copy(
        update={"active_ticket_count": active_counts.get(room.id, 0)}
    )


def _category_out(category, totals, active_counts) -> CategoryResponse:
    return CategoryResponse.model_validate(category).model_copy(
        update={
            "ticket_count": totals.get(category.id, 0),
            "active_ticket_count": active_counts.get(category.id, 0),
        }
    )


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(user_in: UserCreate, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    return CatalogService(db).create_user(user_in)


@router.get("/users", response_model=List[UserResponse])
def list_users(
    role: Optional[Role] = None,
    active_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return CatalogService(db).list_users(role=role, active_only=active_only)


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return CatalogService(db).get_user(user_id)


@router.post("/buildings", response_model=BuildingResponse, status_code=status.HTTP_201_CREATED)
def create_building(
    building_in: BuildingCreate, db: Session = Depends(get_db), current_user: User = Depends(admin_only)
):
    return _building_out(CatalogService(db).create_building(building_in), {})


@router.get("/buildings", response_model=List[BuildingResponse])
def list_buildings(
    active_only: bool = False, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    service = CatalogService(db)
    active_counts = service.active_ticket_counts(Ticket.building_id)
    return [_building_out(b, active_counts) for b in service.list_buildings(active_only=active_only)]


@router.get("/buildings/{building_id}", response_model=BuildingResponse)
def get_building(building_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    service = CatalogService(db)
    return _building_out(service.get_building(building_id), service.active_ticket_counts(Ticket.building_id))


@router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
def create_room(room_in: RoomCreate, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    return _room_out(CatalogService(db).create_room(room_in), {})


@router.get("/rooms", response_model=List[RoomResponse])
def list_rooms(
    building_id: Optional[int] = None, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    service = CatalogService(db)
    active_counts = service.active_ticket_counts(Ticket.room_id)
    return [_room_out(r, active_counts) for r in service.list_rooms(building_id=building_id)]


@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    category_in: CategoryCreate, db: Session = Depends(get_db), current_user: User = Depends(admin_only)
):
    return _category_out(CatalogService(db).create_category(category_in), {}, {})


@router.get("/categories", response_model=List[CategoryResponse])
def list_categories(
    active_only: bool = False, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    service = CatalogService(db)
    totals = service.ticket_counts(Ticket.category_id)
    active_counts = service.active_ticket_counts(Ticket.category_id)
    return [_category_out(c, totals, active_counts) for c in service.list_categories(active_only=active_only)]
