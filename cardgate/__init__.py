"""
cardgate: card payments behind one interface

Callers authorize, capture, refund, void and store cards without knowing
which payment gateway is behind them.
"""

__version__ = "0.1.0"
