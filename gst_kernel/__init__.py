"""
GST Ledger Core - kernel layer

Fixed-precision money, invoice/party/payment records and the typed error
taxonomy shared by the engines and services:
- Decimal-only currency arithmetic with explicit rounding points
- Immutable snapshot records exchanged with the remote store
- Structured JSON logging
"""

__version__ = "0.1.0"
