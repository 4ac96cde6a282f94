import uuid
from decimal import Decimal
import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from rental_engine.database import Base
from rental_engine.utils.timezone import utcnow


class AssetStatus(str, enum.Enum):
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"

    @property
    def display_name(self) -> str:
        return {
            "available": "Available",
            "rented": "Rented",
            "maintenance": "Maintenance",
            "retired": "Retired",
        }.get(self.value, self.value)


class AssetType(str, enum.Enum):
    EXCAVATOR = "excavator"
    BACKHOE = "backhoe"
    CRANE = "crane"
    FORKLIFT = "forklift"
    TRUCK = "truck"
    DUMP_TRUCK = "dump_truck"
    SKID_STEER = "skid_steer"
    COMPACTOR = "compactor"
    MIXER = "mixer"
    AERIAL_LIFT = "aerial_lift"
    FRONT_LOADER = "front_loader"
    CONCRETE_MIXER = "concrete_mixer"
    GENERATOR = "generator"
    AIR_COMPRESSOR = "air_compressor"
    SCAFFOLDING = "scaffolding"
    BOOM_LIFT = "boom_lift"
    SCISSOR_LIFT = "scissor_lift"
    OTHER = "other"


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=True)
    license_plate = Column(String(50), nullable=True, unique=True, index=True)
    serial_number = Column(String(100), nullable=True)
    asset_type = Column(String(50), nullable=False, default=AssetType.OTHER.value, index=True)

    # Rate card
    hourly_rate = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    daily_rate = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    weekly_rate = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    monthly_rate = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    status = Column(String(20), nullable=False, default=AssetStatus.AVAILABLE.value, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Usage counters
    current_hours = Column(Numeric(12, 2), nullable=True)
    current_mileage = Column(Numeric(12, 2), nullable=True)

    # Maintenance schedule
    last_maintenance_date = Column(DateTime, nullable=True)
    next_maintenance_date = Column(DateTime, nullable=True, index=True)
    maintenance_hours_interval = Column(Numeric(12, 2), nullable=True)

    notes = Column(Text, nullable=True)

    # Bumped on every booking write touching this asset
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    rentals = relationship("Rental", back_populates="asset", lazy="select")

    __mapper_args__ = {"version_id_col": version}

    @property
    def display_name(self) -> str:
        parts = f"{self.brand} {self.model}"
        if self.year:
            parts += f" ({self.year})"
        if self.license_plate:
            parts += f" - {self.license_plate}"
        return parts

    def rate_for(self, period_type: str) -> Decimal:
        """Rate card value for an hourly/daily/weekly/monthly period."""
        rate = {
            "hourly": self.hourly_rate,
            "daily": self.daily_rate,
            "weekly": self.weekly_rate,
            "monthly": self.monthly_rate,
        }.get(str(period_type or "").lower())
        return Decimal(rate) if rate is not None else Decimal("0.00")
