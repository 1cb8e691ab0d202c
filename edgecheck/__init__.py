"""
edgecheck: is a trading rule's backtest real, or just overfit?

Walk-forward bounds on future returns and Monte-Carlo permutation tests
for a lookback-optimized moving-average crossover system.
"""

__version__ = "0.1.0"
