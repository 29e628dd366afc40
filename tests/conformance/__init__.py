"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the DSC engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_engine_atomicity.py - Failed operations leave no trace
2. test_solvency.py - Collateral value covers outstanding DSC; accounts stay healthy
3. test_price_round_trip.py - USD conversions lose at most one unit
4. test_liquidation_property.py - Liquidations strictly improve the debtor

These tests use hypothesis for property-based testing.
"""
