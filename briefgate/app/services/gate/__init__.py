"""Per-client request gate: daily quota counter plus cooldown throttle.

State lives in an injectable ``GateStore`` (in-memory by default, Redis when
several instances must share it).
"""

from .cooldown import CooldownThrottle
from .gate import ON_ADMISSION, ON_SUCCESS, RELAXED, STRICT, RequestGate
from .handler import GATE_FIRST, VALIDATE_FIRST, GatedRequestHandler, GatedResponse
from .identity import UNKNOWN_IDENTITY, resolve_client_identity
from .models import (
    Admission,
    CooldownDecision,
    CooldownRecord,
    GateState,
    QuotaDecision,
    QuotaRecord,
)
from .quota import DailyQuotaCounter
from .store import (
    GateStore,
    InMemoryGateStore,
    RedisGateStore,
    create_gate_store,
    get_gate_store,
    reset_gate_store,
)

__all__ = [
    "Admission",
    "CooldownDecision",
    "CooldownRecord",
    "CooldownThrottle",
    "DailyQuotaCounter",
    "GATE_FIRST",
    "GateState",
    "GateStore",
    "GatedRequestHandler",
    "GatedResponse",
    "InMemoryGateStore",
    "ON_ADMISSION",
    "ON_SUCCESS",
    "QuotaDecision",
    "QuotaRecord",
    "RELAXED",
    "RedisGateStore",
    "RequestGate",
    "STRICT",
    "UNKNOWN_IDENTITY",
    "VALIDATE_FIRST",
    "create_gate_store",
    "get_gate_store",
    "reset_gate_store",
    "resolve_client_identity",
]
