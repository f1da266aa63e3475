from dataclasses import dataclass
from time import perf_counter
from uuid import uuid4


@dataclass
class RequestContext:
    request_id: str
    start_time: float

    @property
    def processing_time_ms(self) -> int:
        return int((perf_counter() - self.start_time) * 1000)


def create_request_context() -> RequestContext:
    return RequestContext(
        request_id=str(uuid4()),
        start_time=perf_counter(),
    )
