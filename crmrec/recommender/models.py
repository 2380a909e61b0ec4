"""Typed records exchanged between the stores and the recommendation engine.

Stores return these models instead of raw documents so that every strategy
works against the same field names. All models serialize to JSON with
``model_dump(mode="json")``.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

MAX_INTERACTIONS = 10


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware datetime, reading naive values as UTC.

    Stores such as MongoDB hand back naive UTC timestamps; comparing those
    with aware ones raises ``TypeError``.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Every status except cancelled participates in recommendations and metrics
ACTIVE_STATUSES = frozenset(
    {
        OrderStatus.PENDING,
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
    }
)


class Segment(str, Enum):
    NUEVO = "Nuevo"
    VIP = "VIP"
    FRECUENTE = "Frecuente"
    OCASIONAL = "Ocasional"
    INACTIVO = "Inactivo"
    EN_RIESGO = "En Riesgo"


class LoyaltyLevel(str, Enum):
    BRONCE = "Bronce"
    PLATA = "Plata"
    ORO = "Oro"
    PLATINO = "Platino"
    DIAMANTE = "Diamante"


class ChurnRisk(str, Enum):
    BAJO = "Bajo"
    MEDIO = "Medio"
    ALTO = "Alto"


class CustomerStatus(str, Enum):
    ACTIVO = "Activo"
    INACTIVO = "Inactivo"
    BLOQUEADO = "Bloqueado"
    SUSPENDIDO = "Suspendido"


class OrderItem(BaseModel):
    """A single line of an order."""

    product_id: str
    quantity: int = Field(default=1, ge=1)
    price: float = Field(default=0.0, ge=0)


class Order(BaseModel):
    """Purchase record, consumed read-only."""

    id: str
    user_id: str
    items: List[OrderItem] = Field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    total: float = Field(default=0.0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    order_number: Optional[str] = None

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def distinct_product_ids(self) -> List[str]:
        """Product ids of the order in first-seen order, without repeats."""
        seen: Dict[str, None] = {}
        for item in self.items:
            seen.setdefault(item.product_id, None)
        return list(seen)


class Product(BaseModel):
    """Catalog entry."""

    id: str
    name: str
    brand: str = ""
    price: float = Field(default=0.0, ge=0)
    categories: List[str] = Field(default_factory=list)
    stock: int = Field(default=0, ge=0)
    description: str = ""
    image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator("price")
    @classmethod
    def _two_decimals(cls, value: float) -> float:
        if Decimal(str(value)).as_tuple().exponent < -2:
            raise ValueError(f"price must have at most 2 decimal places, got {value}")
        return value

    @property
    def in_stock(self) -> bool:
        return self.stock > 0


class CustomerMetrics(BaseModel):
    """Engagement snapshot computed from a customer's orders."""

    total_orders: int = Field(default=0, ge=0)
    total_spent: float = Field(default=0.0, ge=0)
    average_order_value: float = Field(default=0.0, ge=0)
    last_order_date: Optional[datetime] = None
    days_since_last_order: Optional[int] = Field(default=None, ge=0)

    @field_validator("last_order_date")
    @classmethod
    def _last_order_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class CustomerPreferences(BaseModel):
    categories: List[str] = Field(default_factory=list)
    brands: List[str] = Field(default_factory=list)


class Interaction(BaseModel):
    type: str
    description: str = ""
    date: datetime = Field(default_factory=utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("date")
    @classmethod
    def _date_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class Customer(BaseModel):
    """CRM record, one per user.

    ``segment``, ``loyalty_level``, ``churn_risk``, ``lifetime_value`` and
    ``is_high_value`` are derived from ``metrics`` by
    :func:`crmrec.recommender.segmentation.apply_metrics` and are never set
    independently.
    """

    id: str
    user_id: str
    customer_code: Optional[str] = None
    name: Optional[str] = None
    segment: Segment = Segment.NUEVO
    loyalty_level: Optional[LoyaltyLevel] = LoyaltyLevel.BRONCE
    churn_risk: Optional[ChurnRisk] = None
    lifetime_value: float = Field(default=0.0, ge=0)
    is_high_value: bool = False
    metrics: CustomerMetrics = Field(default_factory=CustomerMetrics)
    preferences: CustomerPreferences = Field(default_factory=CustomerPreferences)
    interaction_history: List[Interaction] = Field(default_factory=list)
    last_interaction_date: Optional[datetime] = None
    status: CustomerStatus = CustomerStatus.ACTIVO

    @field_validator("last_interaction_date")
    @classmethod
    def _last_interaction_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    def add_interaction(
        self,
        type: str,
        description: str = "",
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> "Customer":
        """Return a copy with a new entry at the head of the interaction log.

        Only the most recent ``MAX_INTERACTIONS`` entries are kept.
        """
        now = as_utc(now) or utcnow()
        entry = Interaction(type=type, description=description, date=now, metadata=metadata or {})
        history = [entry] + list(self.interaction_history)
        return self.model_copy(
            update={
                "interaction_history": history[:MAX_INTERACTIONS],
                "last_interaction_date": now,
            }
        )


class RecommendationEntry(BaseModel):
    """One ranked recommendation."""

    product: Product
    score: float
    reason: str
    reasons: List[str] = Field(default_factory=list)
    total_quantity: Optional[int] = None
    total_orders: Optional[int] = None

    @property
    def product_id(self) -> str:
        return self.product.id


class CustomerProfile(BaseModel):
    """Subset of a customer record used for hybrid recommendations."""

    customer_id: str
    user_id: str
    segment: Optional[Segment] = None
    loyalty_level: Optional[LoyaltyLevel] = None
    total_orders: int = 0
    total_spent: float = 0.0
    last_order_date: Optional[datetime] = None
    preferences: CustomerPreferences = Field(default_factory=CustomerPreferences)
    churn_risk: Optional[ChurnRisk] = None

    @field_validator("last_order_date")
    @classmethod
    def _last_order_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @classmethod
    def from_customer(cls, customer: Customer) -> "CustomerProfile":
        return cls(
            customer_id=customer.id,
            user_id=customer.user_id,
            segment=customer.segment,
            loyalty_level=customer.loyalty_level,
            total_orders=customer.metrics.total_orders,
            total_spent=customer.metrics.total_spent,
            last_order_date=customer.metrics.last_order_date,
            preferences=customer.preferences,
            churn_risk=customer.churn_risk,
        )


class RecommendationBuckets(BaseModel):
    featured: List[RecommendationEntry] = Field(default_factory=list)
    cross_sell: List[RecommendationEntry] = Field(default_factory=list)
    upsell: List[RecommendationEntry] = Field(default_factory=list)
    similar: List[RecommendationEntry] = Field(default_factory=list)
    trending: List[RecommendationEntry] = Field(default_factory=list)

    def total(self) -> int:
        return (
            len(self.featured)
            + len(self.cross_sell)
            + len(self.upsell)
            + len(self.similar)
            + len(self.trending)
        )


class HybridRecommendations(BaseModel):
    """Result of a hybrid profile recommendation call."""

    profile: CustomerProfile
    recommendations: RecommendationBuckets
    confidence_score: float = Field(ge=0.0, le=1.0)
    total_recommendations: int
    generated_at: datetime
    strategy: str = "hybrid-customer-profile"


class UserRecommendations(BaseModel):
    """Result of the lighter per-user hybrid call."""

    user_id: str
    personalized: List[RecommendationEntry] = Field(default_factory=list)
    popular: List[RecommendationEntry] = Field(default_factory=list)
    segment: List[RecommendationEntry] = Field(default_factory=list)
    similar: List[RecommendationEntry] = Field(default_factory=list)


class RecommendationStats(BaseModel):
    total_products: int
    total_orders: int
    total_users: int
    avg_items_per_order: float
    avg_cooccurrences: float
    matrix_size: int
