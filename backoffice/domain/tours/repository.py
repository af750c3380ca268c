"""Tour package repository - Database operations for tour packages"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import TourPackage


class TourPackageRepository:
    """Repository for tour package database operations"""

    @staticmethod
    def list_tours(db: Session, status: Optional[str] = None) -> list[TourPackage]:
        query = db.query(TourPackage)
        if status:
            query = query.filter(TourPackage.status == status)
        return query.order_by(TourPackage.name.asc()).all()

    @staticmethod
    def get_by_id(db: Session, tour_id: str) -> Optional[TourPackage]:
        return db.query(TourPackage).filter(TourPackage.id == tour_id).first()

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[TourPackage]:
        return db.query(TourPackage).filter(TourPackage.slug == slug).first()

    @staticmethod
    def get_by_name(db: Session, name: str) -> Optional[TourPackage]:
        """Case-insensitive name lookup"""
        if not name:
            return None
        return db.query(TourPackage).filter(func.lower(TourPackage.name) == name.strip().lower()).first()

    @staticmethod
    def create_tour(db: Session, tour: TourPackage) -> TourPackage:
        db.add(tour)
        db.commit()
        db.refresh(tour)
        return tour

    @staticmethod
    def save(db: Session, tour: TourPackage) -> TourPackage:
        db.commit()
        db.refresh(tour)
        return tour

    @staticmethod
    def delete_tour(db: Session, tour: TourPackage) -> None:
        db.delete(tour)
        db.commit()
