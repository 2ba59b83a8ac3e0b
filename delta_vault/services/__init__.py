"""Service modules"""
from .exposure import ExposureCalculator
from .ledger import PositionLedger
from .rebalancer import RebalanceEngine
from .valuation import StaticValuation
from .vault import DeltaNeutralVault
from .yield_estimator import YieldEstimator

__all__ = [
    "DeltaNeutralVault",
    "ExposureCalculator",
    "PositionLedger",
    "RebalanceEngine",
    "StaticValuation",
    "YieldEstimator",
]
