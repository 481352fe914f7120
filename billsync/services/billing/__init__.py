"""Billing service module for BigQuery export reads and cost aggregation."""

from .reader import BillingDataReader
from .aggregator import CostAggregator, CostPartial

__all__ = [
    "BillingDataReader",
    "CostAggregator",
    "CostPartial",
]
