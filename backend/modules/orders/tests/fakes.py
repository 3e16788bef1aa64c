# backend/modules/orders/tests/fakes.py


class RecordingFanout:
    """Stands in for the staff fan-out and remembers what was published."""

    def __init__(self):
        self.events = []

    def publish(self, event_type, data):
        self.events.append((event_type, data))
        return 1

    @property
    def event_types(self):
        return [event_type for event_type, _ in self.events]


class FailingFanout:
    def publish(self, event_type, data):
        raise RuntimeError("websocket layer unavailable")


class FakeTransport:
    """Collects what a staff session sends; optionally fails on send."""

    def __init__(self, fail_after=None):
        self.sent = []
        self.fail_after = fail_after

    async def send_json(self, data):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise ConnectionError("client went away")
        self.sent.append(data)
