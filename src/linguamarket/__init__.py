"""linguamarket — settlement engine for a decentralized translation marketplace."""

from linguamarket.config import SettlementConfig
from linguamarket.errors import ErrorCode, SettlementError
from linguamarket.service import SettlementEngine, SettlementResult

__version__ = "0.1.0"

__all__ = [
    "ErrorCode",
    "SettlementConfig",
    "SettlementEngine",
    "SettlementError",
    "SettlementResult",
]
