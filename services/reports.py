# services/reports.py
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from errors import Forbidden, StorageError, ValidationError
from model import Report, ReportStatus, User
from schemas import Identity

logger = logging.getLogger(__name__)


class ReportRegistry:
    def __init__(self, session_factory: sessionmaker, clock: Optional[Callable[[], datetime]] = None):
        self.session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def submit(
        self,
        owner: Identity,
        category: str,
        location: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        description: Optional[str] = None,
        photo_ref: Optional[str] = None,
    ) -> int:
        """
        Store a new report owned by an authenticated identity.

        The report always starts as ``submitted``. ``photo_ref`` is a blob
        store filename and is stored verbatim. Returns the new report id.
        """
        if owner is None:
            raise Forbidden()
        if not category or not category.strip():
            raise ValidationError("Category is required")
        if latitude is not None and not -90 <= latitude <= 90:
            raise ValidationError("Invalid GPS coordinates")
        if longitude is not None and not -180 <= longitude <= 180:
            raise ValidationError("Invalid GPS coordinates")

        report_id = await run_in_threadpool(
            self._insert_report,
            owner.id, category, location, latitude, longitude, description, photo_ref,
        )
        logger.info(f"Report {report_id} submitted by user {owner.id}")
        return report_id

    def _insert_report(self, user_id, category, location, latitude, longitude, description, photo_ref) -> int:
        with self.session_factory() as db:
            try:
                # Reports are never created for accounts that no longer exist
                if db.get(User, user_id) is None:
                    raise Forbidden("Unknown account")

                now = self._clock()
                report = Report(
                    user_id=user_id,
                    category=category,
                    photo=photo_ref,
                    location=location,
                    latitude=latitude,
                    longitude=longitude,
                    description=description,
                    status=ReportStatus.SUBMITTED.value,
                    created_at=now,
                    updated_at=now,
                )
                db.add(report)
                db.commit()
                return report.id
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Report insert failed for user {user_id}: {e}")
                raise StorageError() from e
