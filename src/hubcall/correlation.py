import uuid
from typing import NewType

CorrelationId = NewType("CorrelationId", str)

PROCESS_ID_HEADER = "Process-ID"


def allocate() -> CorrelationId:
    """
    Return a fresh correlation id for one logical call.

    The id travels in the ``Process-ID`` header of every attempt of the call
    and is echoed back by the hub.
    """
    return CorrelationId(str(uuid.uuid4()))
