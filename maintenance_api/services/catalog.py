from typing import Dict, List, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from maintenance_api.core.db import Base
from maintenance_api.core.exceptions import ConflictError, NotFoundError
from maintenance_api.core.logging_config import logger
from maintenance_api.models.catalog import Building, Room, TicketCategory, User
from maintenance_api.models.enums import Role, TicketStatus
from maintenance_api.models.ticket import Ticket
from maintenance_api.schemas.catalog import BuildingCreate, CategoryCreate, RoomCreate, UserCreate

ModelT = TypeVar("ModelT", bound=Base)


class CatalogService:
    """Lookups and minimal writes for the reference data tickets point at."""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, model: Type[ModelT], entity_id: int, label: str) -> ModelT:
        instance = self.db.get(model, entity_id)
        if instance is None:
            raise NotFoundError.for_entity(label, entity_id)
        return instance

    def get_user(self, user_id: int) -> User:
        return self._get(User, user_id, "User")

    def get_building(self, building_id: int) -> Building:
        return self._get(Building, building_id, "Building")

    def get_room(self, room_id: int) -> Room:
        return self._get(Room, room_id, "Room")

    def get_category(self, category_id: int) -> TicketCategory:
        return self._get(TicketCategory, category_id, "Category")

    def list_users(self, role: Optional[Role] = None, active_only: bool = False) -> List[User]:
        query = self.db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        if active_only:
            query = query.filter(User.is_active.is_(True))
        return query.order_by(User.id).all()

    def list_buildings(self, active_only: bool = False) -> List[Building]:
        query = self.db.query(Building)
        if active_only:
            query = query.filter(Building.is_active.is_(True))
        return query.order_by(Building.name).all()

    def list_rooms(self, building_id: Optional[int] = None) -> List[Room]:
        query = self.db.query(Room)
        if building_id is not None:
            query = query.filter(Room.building_id == building_id)
        return query.order_by(Room.building_id, Room.floor_number, Room.room_number).all()

    def list_categories(self, active_only: bool = False) -> List[TicketCategory]:
        query = self.db.query(TicketCategory)
        if active_only:
            query = query.filter(TicketCategory.is_active.is_(True))
        return query.order_by(TicketCategory.name).all()

    def create_user(self, data: UserCreate) -> User:
        if self.db.query(User).filter(User.username == data.username).first():
            raise ConflictError(f"Username already exists: {data.username}", field="username")
        if self.db.query(User).filter(User.email == data.email).first():
            raise ConflictError(f"Email already exists: {data.email}", field="email")
        return self._insert(User(**data.model_dump()))

    def create_building(self, data: BuildingCreate) -> Building:
        if data.manager_id is not None:
            self.get_user(data.manager_id)
        return self._insert(Building(**data.model_dump()))

    def create_room(self, data: RoomCreate) -> Room:
        self.get_building(data.building_id)
        duplicate = (
            self.db.query(Room)
            .filter(
                Room.building_id == data.building_id,
                Room.floor_number == data.floor_number,
                Room.room_number == data.room_number,
            )
            .first()
        )
        if duplicate:
            raise ConflictError(
                f"Room {data.room_number} on floor {data.floor_number} already exists in building {data.building_id}",
                field="room_number",
            )
        return self._insert(Room(**data.model_dump()))

    def create_category(self, data: CategoryCreate) -> TicketCategory:
        if self.db.query(TicketCategory).filter(TicketCategory.name == data.name).first():
            raise ConflictError(f"Category already exists: {data.name}", field="name")
        return self._insert(TicketCategory(**data.model_dump()))

    def _insert(self, instance: ModelT) -> ModelT:
        try:
            self.db.add(instance)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            # A concurrent insert won the unique constraint after our pre-check.
            raise ConflictError(f"{type(instance).__name__} violates a uniqueness constraint") from e
        self.db.refresh(instance)
        logger.info(f"Created {type(instance).__name__} {instance.id}")
        return instance

    def active_ticket_counts(self, column) -> Dict[int, int]:
        """Non-CLOSED ticket counts grouped by a Ticket foreign-key column (building_id, room_id, category_id)."""
        rows = (
            self.db.query(column, func.count(Ticket.id))
            .filter(Ticket.status != TicketStatus.CLOSED, column.isnot(None))
            .group_by(column)
            .all()
        )
        return {key: count for key, count in rows}

    def ticket_counts(self, column) -> Dict[int, int]:
        rows = self.db.query(column, func.count(Ticket.id)).filter(column.isnot(None)).group_by(column).all()
        return {key: count for key, count in rows}
