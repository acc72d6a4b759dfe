"""
Payment Repository Implementation

SQLAlchemy implementation of IPaymentRepository.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domains.commerce.application.ports import IPaymentRepository
from storefront.domains.commerce.domain.entities import PaymentAttempt
from storefront.domains.commerce.domain.value_objects import PaymentStatus
from storefront.models.db import Payment as PaymentModel

logger = logging.getLogger(__name__)


class SQLAlchemyPaymentRepository(IPaymentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, payment: PaymentAttempt) -> PaymentAttempt:
        model = PaymentModel(id=uuid.UUID(str(payment.id)))
        self._apply(payment, model)
        self.session.add(model)
        try:
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error creating payment {payment.reference}: {e}")
            await self.session.rollback()
            raise
        return payment

    async def save(self, payment: PaymentAttempt) -> PaymentAttempt:
        try:
            model = await self.session.get(PaymentModel, uuid.UUID(str(payment.id)))
            if model is None:
                raise ValueError(f"Payment {payment.id} does not exist")
            self._apply(payment, model)
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error saving payment {payment.reference}: {e}")
            await self.session.rollback()
            raise
        return payment

    async def get_by_id(self, payment_id: str) -> PaymentAttempt | None:
        try:
            payment_uuid = uuid.UUID(payment_id)
        except ValueError:
            return None
        model = await self.session.get(PaymentModel, payment_uuid, populate_existing=True)
        return self._to_entity(model) if model else None

    async def get_by_authority(self, authority: str) -> PaymentAttempt | None:
        result = await self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.authority == authority)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_completed_for_order(self, order_id: str) -> PaymentAttempt | None:
        result = await self.session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.order_id == uuid.UUID(order_id),
                PaymentModel.status == PaymentStatus.COMPLETED.value,
            )
            .order_by(PaymentModel.paid_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def mark_completed(self, payment_id: str, transaction_id: str, paid_at: datetime) -> bool:
        """Conditional pending -> completed; only one caller can win."""
        result = await self.session.execute(
            update(PaymentModel)
            .where(
                PaymentModel.id == uuid.UUID(payment_id),
                PaymentModel.status == PaymentStatus.PENDING.value,
            )
            .values(
                status=PaymentStatus.COMPLETED.value,
                transaction_id=transaction_id,
                paid_at=paid_at,
                updated_at=paid_at,
            )
            .returning(PaymentModel.id)
            .execution_options(synchronize_session=False)
        )
        won = result.scalar_one_or_none() is not None
        await self.session.commit()
        return won

    # Mapping methods

    def _to_entity(self, model: PaymentModel) -> PaymentAttempt:
        return PaymentAttempt(
            id=str(model.id),
            created_at=model.created_at,
            updated_at=model.updated_at,
            order_id=str(model.order_id),
            user_id=model.user_id,
            amount=model.amount,
            status=PaymentStatus(model.status),
            reference=model.reference,
            gateway=model.gateway,
            method=model.method,
            description=model.description,
            authority=model.authority,
            transaction_id=model.transaction_id,
            failure_reason=model.failure_reason,
            paid_at=model.paid_at,
            refunded_at=model.refunded_at,
        )

    def _apply(self, payment: PaymentAttempt, model: PaymentModel) -> None:
        model.order_id = uuid.UUID(payment.order_id)
        model.user_id = payment.user_id
        model.amount = payment.amount
        model.status = payment.status.value
        model.reference = payment.reference
        model.gateway = payment.gateway
        model.method = payment.method
        model.description = payment.description
        model.authority = payment.authority
        model.transaction_id = payment.transaction_id
        model.failure_reason = payment.failure_reason
        model.paid_at = payment.paid_at
        model.refunded_at = payment.refunded_at
        model.created_at = payment.created_at
        model.updated_at = payment.updated_at
