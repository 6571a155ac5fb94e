"""Append-only access to the production and blade logs."""
import json
import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from models import BladeLog, ProductionLog
from schemas import BladeLogResponse, BladeTotals, ProductionTotals

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A log insert or query failed."""


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Local-time [start, end) range covering one calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class LogStore:
    """
    Inserts and daily queries over production_log and blade_log.

    Rows are only ever appended: there is no update or delete here.
    """

    def __init__(self, session: Session):
        self.session = session

    def _append(self, row):
        try:
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error inserting into {row.__tablename__}: {str(e)}")
            raise StoreError(str(e)) from e
        return row.id

    def insert_production(self, entry: ProductionLog) -> int:
        return self._append(entry)

    def insert_blade(self, entry: BladeLog) -> int:
        return self._append(entry)

    def aggregate_for_day(self, day: date) -> dict:
        start, end = day_bounds(day)
        try:
            good, rejects, runs = self.session.exec(
                select(
                    func.coalesce(func.sum(ProductionLog.good_parts), 0),
                    func.coalesce(func.sum(ProductionLog.reject_parts), 0),
                    func.count(ProductionLog.id),
                )
                .where(ProductionLog.timestamp >= start)
                .where(ProductionLog.timestamp < end)
            ).one()
            blades, steel = self.session.exec(
                select(
                    func.coalesce(func.sum(BladeLog.blades_cut), 0),
                    func.coalesce(func.sum(BladeLog.total_length_ft), 0),
                )
                .where(BladeLog.timestamp >= start)
                .where(BladeLog.timestamp < end)
            ).one()
        except SQLAlchemyError as e:
            logger.error(f"Error aggregating logs for {day}: {str(e)}")
            raise StoreError(str(e)) from e

        return {
            "production": ProductionTotals(
                total_good=good, total_rejects=rejects, run_count=runs
            ),
            "blade": BladeTotals(total_blades=blades, total_steel=steel),
            "date": day.isoformat(),
        }

    def aggregate_today(self) -> dict:
        return self.aggregate_for_day(datetime.now().date())

    def list_production(self, day: date) -> list[ProductionLog]:
        start, end = day_bounds(day)
        try:
            return self.session.exec(
                select(ProductionLog)
                .where(ProductionLog.timestamp >= start)
                .where(ProductionLog.timestamp < end)
                .order_by(ProductionLog.id)
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing production log for {day}: {str(e)}")
            raise StoreError(str(e)) from e

    def list_blade(self, day: date) -> list[BladeLogResponse]:
        start, end = day_bounds(day)
        try:
            rows = self.session.exec(
                select(BladeLog)
                .where(BladeLog.timestamp >= start)
                .where(BladeLog.timestamp < end)
                .order_by(BladeLog.id)
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing blade log for {day}: {str(e)}")
            raise StoreError(str(e)) from e

        return [
            BladeLogResponse(
                id=row.id,
                timestamp=row.timestamp,
                coil_count=row.coil_count,
                total_length_ft=row.total_length_ft,
                blades_cut=row.blades_cut,
                material_cost=row.material_cost,
                operator=row.operator,
                coil_ids=json.loads(row.coil_ids or "[]"),
            )
            for row in rows
        ]
