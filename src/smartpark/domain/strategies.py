# File: src/smartpark/domain/strategies.py
"""
Pricing Strategy for the parking core

The Pricing Engine is a pure function of (vehicle class, elapsed duration).
It is expressed as a Strategy so the lifecycle manager depends only on the
PricingStrategy interface; StandardPricingStrategy is the single shipped
policy:

- Each vehicle class has a fixed hourly base rate
- Stays shorter than 30 minutes pay a flat minimum charge
- Longer stays pay base_rate x ceil(hours), measured in whole minutes
- The result is rounded half-up to two decimal places
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional
from datetime import timedelta
from decimal import Decimal
import logging

from .models import Money, VehicleType


DEFAULT_HOURLY_RATES: Dict[VehicleType, Decimal] = {
    VehicleType.TWO_WHEELER: Decimal('10.00'),
    VehicleType.FOUR_WHEELER: Decimal('20.00'),
    VehicleType.HEAVY_VEHICLE: Decimal('40.00'),
}

DEFAULT_MINIMUM_CHARGE = Decimal('5.00')

MINIMUM_CHARGE_THRESHOLD_MINUTES = 30


# ============================================================================
# STRATEGY INTERFACE
# ============================================================================

class PricingStrategy(ABC):
    """
    Abstract base class for pricing strategies
    Defines the interface for fee calculation algorithms
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def calculate_price(self, vehicle_type: VehicleType, duration: timedelta) -> Decimal:
        """
        Calculate the parking fee for a stay of `duration`
        Returns: Non-negative fee with two-decimal precision
        Raises: ValueError for negative or missing durations
        """
        pass

    def get_strategy_name(self) -> str:
        return self.__class__.__name__.replace("Strategy", "")

    def __str__(self) -> str:
        return f"{self.get_strategy_name()} Strategy"


# ============================================================================
# CONCRETE PRICING STRATEGIES
# ============================================================================

class StandardPricingStrategy(PricingStrategy):
    """
    Standard pricing strategy
    - Hourly rate per vehicle class, billed per started hour
    - Flat minimum charge for stays under 30 minutes
    """

    def __init__(
        self,
        hourly_rates: Optional[Dict[VehicleType, Decimal]] = None,
        minimum_charge: Optional[Decimal] = None
    ):
        super().__init__()
        rates = dict(DEFAULT_HOURLY_RATES)
        if hourly_rates:
            rates.update({VehicleType(k): Decimal(str(v)) for k, v in hourly_rates.items()})

        # Rates stay exact; only the final fee is rounded
        self.hourly_rates = rates
        self.minimum_charge = Money(
            minimum_charge if minimum_charge is not None else DEFAULT_MINIMUM_CHARGE
        ).amount
        self._validate_rates()

    def _validate_rates(self) -> None:
        """Rates must be positive and rise strictly with vehicle size"""
        ordered = [self.hourly_rates[vehicle_type] for vehicle_type in VehicleType]
        if any(not rate.is_finite() or rate <= Decimal('0') for rate in ordered):
            raise ValueError(f"Hourly rates must be positive, got {ordered}")
        for smaller, larger in zip(ordered, ordered[1:]):
            if larger <= smaller:
                raise ValueError(
                    f"Hourly rates must be strictly increasing by vehicle class, got {ordered}"
                )

    def calculate_price(self, vehicle_type: VehicleType, duration: timedelta) -> Decimal:
        if duration is None:
            raise ValueError("Parking duration is required")

        if duration < timedelta(0):
            raise ValueError(f"Parking duration cannot be negative: {duration}")

        minutes = int(duration.total_seconds() // 60)

        if minutes < MINIMUM_CHARGE_THRESHOLD_MINUTES:
            self.logger.debug(f"Minimum charge applied for {minutes} minute stay")
            return self.minimum_charge

        base_rate = self.hourly_rates[VehicleType(vehicle_type)]

        # Ceiling division: every started hour is billed in full
        billable_hours = -(-minutes // 60)

        fee = Money(base_rate * billable_hours)
        self.logger.debug(
            f"Calculated fee {fee.amount} for {vehicle_type} "
            f"({minutes} minutes, {billable_hours} billable hours)"
        )
        return fee.amount
