#!/usr/bin/env python3
"""
Pricing Strategy Unit Tests

Fee boundaries: minimum charge below 30 minutes, per started hour above.
"""

import unittest
from datetime import timedelta
from decimal import Decimal

from smartpark.domain.models import VehicleType
from smartpark.domain.strategies import StandardPricingStrategy, PricingStrategy


class TestStandardPricingStrategy(unittest.TestCase):
    """Unit tests for StandardPricingStrategy"""

    def setUp(self):
        """Set up the default strategy"""
        self.strategy = StandardPricingStrategy()

    def price(self, vehicle_type, **duration):
        return self.strategy.calculate_price(vehicle_type, timedelta(**duration))

    def test_short_stay_pays_minimum_charge(self):
        """Test stays under 30 minutes pay the flat minimum"""
        self.assertEqual(self.price(VehicleType.FOUR_WHEELER, minutes=0), Decimal('5.00'))
        self.assertEqual(self.price(VehicleType.FOUR_WHEELER, minutes=29), Decimal('5.00'))
        self.assertEqual(self.price(VehicleType.FOUR_WHEELER, minutes=29, seconds=59), Decimal('5.00'))

    def test_minimum_charge_ignores_vehicle_class(self):
        """Test the minimum charge is the same for every class"""
        for vehicle_type in VehicleType:
            self.assertEqual(self.price(vehicle_type, minutes=10), Decimal('5.00'))

    def test_first_hour_billed_from_thirty_minutes(self):
        """Test 30, 31 and 60 minutes bill one hour"""
        self.assertEqual(self.price(VehicleType.FOUR_WHEELER, minutes=30), Decimal('20.00'))
        self.assertEqual(self.price(VehicleType.FOUR_WHEELER, minutes=31), Decimal('20.00'))
        self.assertEqual(self.price(VehicleType.FOUR_WHEELER, minutes=60), Decimal('20.00'))

    def test_started_hour_billed_in_full(self):
        """Test 61 and 90 minutes bill two hours"""
        self.assertEqual(self.price(VehicleType.FOUR_WHEELER, minutes=61), Decimal('40.00'))
        self.assertEqual(self.price(VehicleType.FOUR_WHEELER, minutes=90), Decimal('40.00'))
        self.assertEqual(self.price(VehicleType.TWO_WHEELER, minutes=61), Decimal('20.00'))
        self.assertEqual(self.price(VehicleType.HEAVY_VEHICLE, minutes=90), Decimal('80.00'))

    def test_seconds_are_truncated(self):
        """Test a stay of 60 minutes 59 seconds is still one hour"""
        self.assertEqual(self.price(VehicleType.TWO_WHEELER, minutes=60, seconds=59), Decimal('10.00'))

    def test_multi_day_stay(self):
        """Test long stays keep billing per started hour"""
        self.assertEqual(self.price(VehicleType.HEAVY_VEHICLE, days=1, minutes=1), Decimal('1000.00'))

    def test_result_has_two_decimal_places(self):
        """Test fees are quantized to cents"""
        fee = self.price(VehicleType.TWO_WHEELER, minutes=45)
        self.assertEqual(fee.as_tuple().exponent, -2)

    def test_negative_duration_rejected(self):
        """Test negative durations raise ValueError"""
        with self.assertRaises(ValueError):
            self.price(VehicleType.FOUR_WHEELER, minutes=-1)

    def test_missing_duration_rejected(self):
        """Test a None duration raises ValueError"""
        with self.assertRaises(ValueError):
            self.strategy.calculate_price(VehicleType.FOUR_WHEELER, None)

    def test_custom_rates_rounded_half_up(self):
        """Test configured rates stay exact and only the final fee is rounded half-up"""
        strategy = StandardPricingStrategy(hourly_rates={VehicleType.TWO_WHEELER: Decimal('12.345')})
        self.assertEqual(strategy.hourly_rates[VehicleType.TWO_WHEELER], Decimal('12.345'))
        self.assertEqual(
            strategy.calculate_price(VehicleType.TWO_WHEELER, timedelta(minutes=61)),
            Decimal('24.69')
        )

        strategy = StandardPricingStrategy(hourly_rates={VehicleType.TWO_WHEELER: Decimal('10.0025')})
        self.assertEqual(
            strategy.calculate_price(VehicleType.TWO_WHEELER, timedelta(minutes=61)),
            Decimal('20.01')
        )

    def test_non_positive_rate_rejected(self):
        """Test every hourly rate must be positive"""
        with self.assertRaises(ValueError):
            StandardPricingStrategy(hourly_rates={VehicleType.TWO_WHEELER: Decimal('0')})

    def test_custom_minimum_charge(self):
        """Test the minimum charge is configurable"""
        strategy = StandardPricingStrategy(minimum_charge=Decimal('7.50'))
        self.assertEqual(
            strategy.calculate_price(VehicleType.HEAVY_VEHICLE, timedelta(minutes=5)),
            Decimal('7.50')
        )

    def test_rates_must_increase_with_vehicle_size(self):
        """Test non-increasing rates are rejected"""
        with self.assertRaises(ValueError):
            StandardPricingStrategy(hourly_rates={VehicleType.FOUR_WHEELER: Decimal('10.00')})

        with self.assertRaises(ValueError):
            StandardPricingStrategy(hourly_rates={VehicleType.HEAVY_VEHICLE: Decimal('15.00')})

    def test_strategy_name(self):
        """Test strategy naming"""
        self.assertIsInstance(self.strategy, PricingStrategy)
        self.assertEqual(self.strategy.get_strategy_name(), "StandardPricing")
        self.assertEqual(str(self.strategy), "StandardPricing Strategy")


if __name__ == '__main__':
    unittest.main()
