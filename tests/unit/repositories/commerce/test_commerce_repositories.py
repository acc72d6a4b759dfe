"""
Unit tests for Commerce Domain Repositories.

Tests the SQLAlchemy data access layer against a mocked AsyncSession:
stock ledger, carts, coupons, campaigns, orders and payment attempts.
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.domain import (
    CampaignNotEligibleException,
    CouponInvalidException,
    EntityNotFoundException,
    InsufficientStockException,
    StockLedgerInvariantError,
    ValidationException,
)
from storefront.domains.commerce.domain.entities import CampaignRules, TargetAudience
from storefront.domains.commerce.domain.value_objects import (
    CampaignStatus,
    CustomerCohort,
    DiscountTier,
    DiscountType,
    OrderStatus,
    PaymentStatus,
)
from storefront.domains.commerce.infrastructure.repositories.campaign_repository import (
    SQLAlchemyCampaignRepository,
    audience_from_dict,
    audience_to_dict,
    rules_from_dict,
    rules_to_dict,
)
from storefront.domains.commerce.infrastructure.repositories.cart_repository import SQLAlchemyCartRepository
from storefront.domains.commerce.infrastructure.repositories.coupon_repository import (
    SQLAlchemyCouponRepository,
)
from storefront.domains.commerce.infrastructure.repositories.order_repository import SQLAlchemyOrderRepository
from storefront.domains.commerce.infrastructure.repositories.payment_repository import (
    SQLAlchemyPaymentRepository,
)
from storefront.domains.commerce.infrastructure.repositories.stock_ledger import SQLAlchemyStockLedger

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def mock_async_session():
    """Create a mock async database session."""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.get = AsyncMock()
    session.add = MagicMock()
    return session


def row_result(row):
    result = MagicMock()
    result.one_or_none.return_value = row
    return result


def scalar_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    return result


@pytest.fixture
def sample_coupon_model():
    """Sample SQLAlchemy coupon model."""
    model = MagicMock()
    model.id = uuid4()
    model.code = "SAVE10"
    model.description = "Ten percent off"
    model.discount_type = "percentage"
    model.discount_value = Decimal("10")
    model.minimum_amount = None
    model.maximum_discount = Decimal("50.00")
    model.valid_from = NOW - timedelta(days=1)
    model.valid_until = NOW + timedelta(days=30)
    model.usage_limit = 100
    model.used_count = 3
    model.per_user_limit = 1
    model.scope = {"category_ids": ["c-accessories"]}
    model.user_ids = None
    model.free_shipping = False
    model.is_active = True
    model.created_at = NOW
    model.updated_at = NOW
    return model


@pytest.fixture
def sample_campaign_model():
    """Sample SQLAlchemy campaign model."""
    model = MagicMock()
    model.id = uuid4()
    model.name = "Spring sale"
    model.description = None
    model.campaign_type = "seasonal"
    model.status = "active"
    model.start_date = NOW - timedelta(days=1)
    model.end_date = NOW + timedelta(days=7)
    model.rules = {"discount_type": "percentage", "discount_value": "15", "limit_per_user": 2}
    model.audience = {"all_users": False, "cohorts": ["vip"]}
    model.scope = None
    model.priority = 5
    model.is_stackable = True
    model.requires_coupon = False
    model.coupon_code = None
    model.created_at = NOW
    model.updated_at = NOW
    return model


@pytest.fixture
def sample_order_model():
    """Sample SQLAlchemy order model with JSONB snapshots."""
    model = MagicMock()
    model.id = uuid4()
    model.created_at = NOW
    model.updated_at = NOW
    model.version = 2
    model.order_number = "ORD-250301-0001"
    model.user_id = "user-1"
    model.lines = [
        {
            "product_id": "p-mouse",
            "name": "Mouse",
            "price": "50.00",
            "discount_percent": "0",
            "final_price": "50.00",
            "quantity": 2,
            "stock_state": "reserved",
        }
    ]
    model.status = "pending"
    model.status_history = [{"status": "pending", "timestamp": NOW.isoformat(), "note": None, "actor": "user-1"}]
    model.payment = {"method": None, "status": "pending", "amount": "130.00"}
    model.shipping_address = None
    model.shipping_method = "normal"
    model.shipping_cost = Decimal("30.00")
    model.tracking_code = None
    model.customer_notes = None
    model.subtotal = Decimal("100.00")
    model.product_discount_total = Decimal("0.00")
    model.coupon_discount = Decimal("0.00")
    model.campaign_discount = Decimal("0.00")
    model.total_discount = Decimal("0.00")
    model.total_amount = Decimal("130.00")
    model.coupon_code = None
    model.applied_discounts = []
    model.delivered_at = None
    model.cancelled_at = None
    model.cancel_reason = None
    model.returned_at = None
    model.return_reason = None
    return model


@pytest.fixture
def sample_payment_model():
    """Sample SQLAlchemy payment model."""
    model = MagicMock()
    model.id = uuid4()
    model.created_at = NOW
    model.updated_at = NOW
    model.order_id = uuid4()
    model.user_id = "user-1"
    model.amount = Decimal("130.00")
    model.status = "pending"
    model.reference = "PAY-20250301-ABC123"
    model.gateway = "zarinpal"
    model.method = "online"
    model.description = "Payment for order ORD-250301-0001"
    model.authority = "A0000000001"
    model.transaction_id = None
    model.failure_reason = None
    model.paid_at = None
    model.refunded_at = None
    return model


# ============================================================================
# Stock Ledger Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.repository
class TestSQLAlchemyStockLedger:
    """Conditional UPDATE ... RETURNING counters."""

    @pytest.mark.asyncio
    async def test_reserve_returns_new_level(self, mock_async_session):
        # Arrange
        mock_async_session.execute.return_value = row_result((10, 3, 0))
        ledger = SQLAlchemyStockLedger(mock_async_session)

        # Act
        level = await ledger.reserve("p-laptop", 3)

        # Assert
        assert (level.on_hand, level.reserved, level.available) == (10, 3, 7)
        mock_async_session.execute.assert_called_once()
        mock_async_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_reserve_refused_reports_available(self, mock_async_session):
        # Arrange - the guarded update matches no row, then the current level is read
        mock_async_session.execute.side_effect = [row_result(None), row_result((10, 9, 0))]
        ledger = SQLAlchemyStockLedger(mock_async_session)

        # Act & Assert
        with pytest.raises(InsufficientStockException) as exc_info:
            await ledger.reserve("p-laptop", 2)

        assert exc_info.value.requested == 2
        assert exc_info.value.available == 1

    @pytest.mark.asyncio
    async def test_reserve_unknown_product(self, mock_async_session):
        mock_async_session.execute.side_effect = [row_result(None), row_result(None)]
        ledger = SQLAlchemyStockLedger(mock_async_session)

        with pytest.raises(EntityNotFoundException):
            await ledger.reserve("p-missing", 1)

    @pytest.mark.asyncio
    async def test_non_positive_quantity_rejected(self, mock_async_session):
        ledger = SQLAlchemyStockLedger(mock_async_session)

        with pytest.raises(ValidationException):
            await ledger.commit_sale("p-laptop", 0)

        mock_async_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_commit_sale_moves_counters(self, mock_async_session):
        mock_async_session.execute.return_value = row_result((9, 0, 1))
        ledger = SQLAlchemyStockLedger(mock_async_session)

        level = await ledger.commit_sale("p-laptop", 1)

        assert (level.on_hand, level.reserved, level.sold) == (9, 0, 1)

    @pytest.mark.asyncio
    async def test_release_unknown_product(self, mock_async_session):
        mock_async_session.execute.return_value = row_result(None)
        ledger = SQLAlchemyStockLedger(mock_async_session)

        with pytest.raises(EntityNotFoundException):
            await ledger.release("p-missing", 1)

    @pytest.mark.asyncio
    async def test_broken_row_raises_invariant_error(self, mock_async_session):
        mock_async_session.execute.return_value = row_result((2, 5, 0))
        ledger = SQLAlchemyStockLedger(mock_async_session)

        with pytest.raises(StockLedgerInvariantError):
            await ledger.restock("p-laptop", 1)

    @pytest.mark.asyncio
    async def test_database_error_rolls_back(self, mock_async_session):
        mock_async_session.execute.side_effect = RuntimeError("connection lost")
        ledger = SQLAlchemyStockLedger(mock_async_session)

        with pytest.raises(RuntimeError):
            await ledger.reserve("p-laptop", 1)

        mock_async_session.rollback.assert_called_once()
        mock_async_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_level_missing(self, mock_async_session):
        mock_async_session.execute.return_value = row_result(None)
        ledger = SQLAlchemyStockLedger(mock_async_session)

        assert await ledger.get_level("p-missing") is None


# ============================================================================
# Cart Repository Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.repository
class TestSQLAlchemyCartRepository:
    """One cart per user."""

    @pytest.mark.asyncio
    async def test_get_by_user_maps_items(self, mock_async_session):
        # Arrange
        item = MagicMock()
        item.product_id = "p-mouse"
        item.name = "Mouse"
        item.quantity = 2
        item.unit_price = Decimal("50.00")
        item.unit_discount_percent = Decimal("0")
        item.category_id = "c-accessories"
        item.brand = "Logi"
        item.added_at = NOW
        model = MagicMock()
        model.user_id = "user-1"
        model.items = [item]
        model.coupon = {"code": "SAVE10", "discount_type": "percentage", "discount_value": "10"}
        model.expires_at = NOW + timedelta(days=30)
        model.created_at = NOW
        model.updated_at = NOW
        mock_async_session.execute.return_value = scalar_result(model)
        repository = SQLAlchemyCartRepository(mock_async_session)

        # Act
        cart = await repository.get_by_user("user-1")

        # Assert
        assert cart.id == "user-1"
        assert cart.items[0].quantity == 2
        assert cart.coupon.code == "SAVE10"
        assert cart.coupon.discount_value == Decimal("10")

    @pytest.mark.asyncio
    async def test_get_by_user_missing(self, mock_async_session):
        mock_async_session.execute.return_value = scalar_result(None)
        repository = SQLAlchemyCartRepository(mock_async_session)

        assert await repository.get_by_user("nobody") is None

    @pytest.mark.asyncio
    async def test_delete_expired_returns_rowcount(self, mock_async_session):
        result = MagicMock()
        result.rowcount = 3
        mock_async_session.execute.return_value = result
        repository = SQLAlchemyCartRepository(mock_async_session)

        purged = await repository.delete_expired(NOW)

        assert purged == 3
        mock_async_session.commit.assert_called_once()


# ============================================================================
# Coupon Repository Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.repository
class TestSQLAlchemyCouponRepository:
    """Coupon lookup and guarded redemption counting."""

    @pytest.mark.asyncio
    async def test_get_by_code_maps_model(self, mock_async_session, sample_coupon_model):
        mock_async_session.execute.return_value = scalar_result(sample_coupon_model)
        repository = SQLAlchemyCouponRepository(mock_async_session)

        coupon = await repository.get_by_code(" save10 ")

        assert coupon.code == "SAVE10"
        assert coupon.discount_type == DiscountType.PERCENTAGE
        assert coupon.minimum_amount == Decimal("0")
        assert coupon.scope.category_ids == frozenset({"c-accessories"})
        assert coupon.used_count == 3

    @pytest.mark.asyncio
    async def test_record_usage(self, mock_async_session):
        # Arrange
        mock_async_session.execute.side_effect = [scalar_result(uuid4()), scalar_result("SAVE10")]
        repository = SQLAlchemyCouponRepository(mock_async_session)

        # Act
        recorded = await repository.record_usage(str(uuid4()), "user-1", str(uuid4()), Decimal("10.00"))

        # Assert
        assert recorded is True
        assert mock_async_session.execute.call_count == 2
        mock_async_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_record_usage_twice_for_same_order(self, mock_async_session):
        mock_async_session.execute.return_value = scalar_result(None)
        repository = SQLAlchemyCouponRepository(mock_async_session)

        recorded = await repository.record_usage(str(uuid4()), "user-1", str(uuid4()), Decimal("10.00"))

        assert recorded is False
        mock_async_session.execute.assert_called_once()
        mock_async_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_record_usage_on_exhausted_coupon(self, mock_async_session):
        mock_async_session.execute.side_effect = [scalar_result(uuid4()), scalar_result(None)]
        repository = SQLAlchemyCouponRepository(mock_async_session)

        with pytest.raises(CouponInvalidException) as exc_info:
            await repository.record_usage(str(uuid4()), "user-1", str(uuid4()), Decimal("10.00"))

        assert exc_info.value.reason == "usage_limit_reached"
        mock_async_session.rollback.assert_called_once()
        mock_async_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_release_usage_gives_redemption_back(self, mock_async_session):
        mock_async_session.execute.side_effect = [scalar_result(uuid4()), MagicMock()]
        repository = SQLAlchemyCouponRepository(mock_async_session)

        released = await repository.release_usage(str(uuid4()), str(uuid4()))

        assert released is True
        assert mock_async_session.execute.call_count == 2
        mock_async_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_release_usage_without_record(self, mock_async_session):
        mock_async_session.execute.return_value = scalar_result(None)
        repository = SQLAlchemyCouponRepository(mock_async_session)

        released = await repository.release_usage(str(uuid4()), str(uuid4()))

        assert released is False
        mock_async_session.execute.assert_called_once()
        mock_async_session.commit.assert_not_called()


# ============================================================================
# Campaign Repository Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.repository
class TestSQLAlchemyCampaignRepository:
    """Campaign persistence and usage counting."""

    @pytest.mark.asyncio
    async def test_get_by_id(self, mock_async_session, sample_campaign_model):
        mock_async_session.get.return_value = sample_campaign_model
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        campaign = await repository.get_by_id(str(sample_campaign_model.id))

        assert campaign.name == "Spring sale"
        assert campaign.status == CampaignStatus.ACTIVE
        assert campaign.rules.discount_value == Decimal("15")
        assert campaign.rules.limit_per_user == 2
        assert campaign.audience.cohorts == frozenset({CustomerCohort.VIP})

    @pytest.mark.asyncio
    async def test_get_by_invalid_id(self, mock_async_session):
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        assert await repository.get_by_id("not-a-uuid") is None
        mock_async_session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_live(self, mock_async_session, sample_campaign_model):
        result = MagicMock()
        result.scalars.return_value.all.return_value = [sample_campaign_model]
        mock_async_session.execute.return_value = result
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        campaigns = await repository.list_live(NOW)

        assert [c.name for c in campaigns] == ["Spring sale"]

    @pytest.mark.asyncio
    async def test_get_usage(self, mock_async_session):
        campaign_id = uuid4()
        row = MagicMock()
        row.campaign_id = campaign_id
        row.user_count = 1
        row.total_count = 40
        result = MagicMock()
        result.all.return_value = [row]
        mock_async_session.execute.return_value = result
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        usage = await repository.get_usage([str(campaign_id)], "user-1")

        assert usage[str(campaign_id)].user_count == 1
        assert usage[str(campaign_id)].total_count == 40

    @pytest.mark.asyncio
    async def test_get_usage_without_ids(self, mock_async_session):
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        assert await repository.get_usage([], "user-1") == {}
        mock_async_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_record_usage(self, mock_async_session):
        # Arrange
        mock_async_session.execute.side_effect = [scalar_result({"discount_value": "10"}), scalar_result(uuid4())]
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        # Act
        recorded = await repository.record_usage(str(uuid4()), "user-1", str(uuid4()), Decimal("10.00"))

        # Assert
        assert recorded is True
        assert mock_async_session.execute.call_count == 2
        mock_async_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_record_usage_under_total_limit(self, mock_async_session):
        mock_async_session.execute.side_effect = [
            scalar_result({"total_usage_limit": 2}),
            scalar_result(1),
            scalar_result(uuid4()),
        ]
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        recorded = await repository.record_usage(str(uuid4()), "user-1", str(uuid4()), Decimal("10.00"))

        assert recorded is True
        assert mock_async_session.execute.call_count == 3

    @pytest.mark.asyncio
    async def test_record_usage_on_exhausted_campaign(self, mock_async_session):
        # Arrange
        mock_async_session.execute.side_effect = [scalar_result({"total_usage_limit": 1}), scalar_result(1)]
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        # Act
        with pytest.raises(CampaignNotEligibleException) as exc_info:
            await repository.record_usage(str(uuid4()), "user-1", str(uuid4()), Decimal("10.00"))

        # Assert
        assert exc_info.value.reason == "usage_limit_reached"
        assert mock_async_session.execute.call_count == 2
        mock_async_session.rollback.assert_called_once()
        mock_async_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_release_usage(self, mock_async_session):
        mock_async_session.execute.return_value = scalar_result(uuid4())
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        assert await repository.release_usage(str(uuid4()), str(uuid4())) is True
        mock_async_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_release_usage_rolls_back_on_error(self, mock_async_session):
        mock_async_session.execute.side_effect = RuntimeError("connection lost")
        repository = SQLAlchemyCampaignRepository(mock_async_session)

        with pytest.raises(RuntimeError):
            await repository.release_usage(str(uuid4()), str(uuid4()))

        mock_async_session.rollback.assert_called_once()

    def test_rules_document(self):
        rules = CampaignRules(
            discount_type=DiscountType.TIERED,
            tiers=(DiscountTier(Decimal("100"), Decimal("5")), DiscountTier(Decimal("500"), Decimal("10"))),
            max_discount_amount=Decimal("80"),
        )

        restored = rules_from_dict(rules_to_dict(rules))

        assert restored.tiers == rules.tiers
        assert restored.max_discount_amount == Decimal("80")

    def test_audience_document(self):
        audience = TargetAudience(
            all_users=False,
            cohorts=frozenset({CustomerCohort.NEW}),
            registered_from=NOW - timedelta(days=30),
        )

        data = audience_to_dict(audience)

        assert data["cohorts"] == ["new"]
        assert audience_from_dict(data) == audience
        assert audience_from_dict(None).all_users is True


# ============================================================================
# Order Repository Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.repository
class TestSQLAlchemyOrderRepository:
    """Order aggregate persistence."""

    @pytest.mark.asyncio
    async def test_get_by_id_maps_snapshots(self, mock_async_session, sample_order_model):
        # Arrange
        mock_async_session.get.return_value = sample_order_model
        repository = SQLAlchemyOrderRepository(mock_async_session)

        # Act
        order = await repository.get_by_id(str(sample_order_model.id))

        # Assert
        assert order.order_number == "ORD-250301-0001"
        assert order.status == OrderStatus.PENDING
        assert order.lines[0].quantity == 2
        assert order.status_walk() == [OrderStatus.PENDING]
        assert order.total_amount == Decimal("130.00")

    @pytest.mark.asyncio
    async def test_get_by_invalid_id(self, mock_async_session):
        repository = SQLAlchemyOrderRepository(mock_async_session)

        assert await repository.get_by_id("ORD-250301-0001") is None

    @pytest.mark.asyncio
    async def test_next_daily_sequence(self, mock_async_session):
        mock_async_session.execute.return_value = scalar_result(4)
        repository = SQLAlchemyOrderRepository(mock_async_session)

        value = await repository.next_daily_sequence(date(2025, 3, 1))

        assert value == 4
        mock_async_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_customer_history(self, mock_async_session):
        result = MagicMock()
        result.one.return_value = (3, Decimal("1500.50"), NOW)
        mock_async_session.execute.return_value = result
        repository = SQLAlchemyOrderRepository(mock_async_session)

        history = await repository.get_customer_history("user-1")

        assert history.delivered_count == 3
        assert history.total_spent == Decimal("1500.50")
        assert history.last_delivered_at == NOW

    @pytest.mark.asyncio
    async def test_save_missing_order_rolls_back(self, mock_async_session, sample_order_model):
        mock_async_session.get.return_value = sample_order_model
        repository = SQLAlchemyOrderRepository(mock_async_session)
        order = await repository.get_by_id(str(sample_order_model.id))
        mock_async_session.get.return_value = None

        with pytest.raises(ValueError):
            await repository.save(order)

        mock_async_session.rollback.assert_called_once()


# ============================================================================
# Payment Repository Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.repository
class TestSQLAlchemyPaymentRepository:
    """Payment attempts and the single-winner completion."""

    @pytest.mark.asyncio
    async def test_get_by_authority(self, mock_async_session, sample_payment_model):
        mock_async_session.execute.return_value = scalar_result(sample_payment_model)
        repository = SQLAlchemyPaymentRepository(mock_async_session)

        payment = await repository.get_by_authority("A0000000001")

        assert payment.status == PaymentStatus.PENDING
        assert payment.order_id == str(sample_payment_model.order_id)
        assert payment.amount == Decimal("130.00")

    @pytest.mark.asyncio
    async def test_mark_completed_winner(self, mock_async_session):
        mock_async_session.execute.return_value = scalar_result(uuid4())
        repository = SQLAlchemyPaymentRepository(mock_async_session)

        won = await repository.mark_completed(str(uuid4()), "TX-1", NOW)

        assert won is True
        mock_async_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_mark_completed_loser(self, mock_async_session):
        mock_async_session.execute.return_value = scalar_result(None)
        repository = SQLAlchemyPaymentRepository(mock_async_session)

        won = await repository.mark_completed(str(uuid4()), "TX-1", NOW)

        assert won is False

    @pytest.mark.asyncio
    async def test_get_by_invalid_id(self, mock_async_session):
        repository = SQLAlchemyPaymentRepository(mock_async_session)

        assert await repository.get_by_id("nope") is None
        mock_async_session.get.assert_not_called()
