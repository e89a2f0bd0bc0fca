from specstack.core.time.abc import Time
from specstack.core.time.fake import FakeTime
from specstack.core.time.real import RealTime

__all__ = [
    "FakeTime",
    "RealTime",
    "Time",
]
