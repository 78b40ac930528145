# app/repositories/coupon_repo.py
from sqlalchemy import or_, update
from sqlmodel import Session, col, select

from app.models.coupon import Coupon


class CouponRepository:

    def get_by_code(self, session: Session, code: str) -> Coupon | None:
        stmt = select(Coupon).where(Coupon.code == code.strip().upper())
        return session.exec(stmt.execution_options(populate_existing=True)).first()

    def list_all(self, session: Session, skip: int = 0, limit: int = 50) -> list[Coupon]:
        stmt = (
            select(Coupon)
            .order_by(col(Coupon.created_at).desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def create(self, session: Session, coupon: Coupon) -> Coupon:
        session.add(coupon)
        session.commit()
        session.refresh(coupon)
        return coupon

    def increment_usage(self, session: Session, code: str) -> bool:
        """
        used_count += 1, only while under usage_limit. No commit.

        Returns False when the limit was already reached (or the code
        vanished), so the caller can roll back.
        """
        stmt = (
            update(Coupon)
            .where(Coupon.code == code.strip().upper())
            .where(
                or_(
                    col(Coupon.usage_limit).is_(None),
                    col(Coupon.used_count) < col(Coupon.usage_limit),
                )
            )
            .values(used_count=col(Coupon.used_count) + 1)
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        return result.rowcount == 1
