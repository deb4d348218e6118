import unittest

from requests import ConnectionError

from mobilelib.errors import (ApplicationError, OperationCancelled, OperationFailed,
                              ProtocolViolation, StatusUnknown, TransportError)
from mobilelib.plumbing.common import State
from mobilelib.plumbing.operations import Phase, request_id, track_operation

from .plumbing import FakeHTTP, make_context, Recorder, response


OPERATION = "/sub/operations/op-1"


def status(value):
    return response(200, {"ID": "op-1", "Status": value})


class TestOperationTracker(unittest.TestCase):

    def setUp(self):
        self.http = FakeHTTP()
        self.ctx = make_context(self.http)
        self.rec = Recorder()

    def track(self, *responses):
        self.http.route("GET", OPERATION, *responses)
        tracker = track_operation(self.ctx, "op-1", self.rec)
        return tracker

    def test_succeeded(self):
        tracker = self.track(status("InProgress"), status("InProgress"), status("Succeeded"))
        self.ctx.run()
        self.assertIsNone(self.rec.error)
        self.assertEqual(self.rec.value.state, State.success)
        self.assertEqual(tracker.phase, Phase.succeeded)
        self.assertEqual(tracker.polls, 3)
        self.assertEqual(self.ctx.clock.now, 10)

    def test_succeeded_immediately(self):
        tracker = self.track(status("Succeeded"))
        self.ctx.run()
        self.assertEqual(tracker.polls, 1)
        self.assertEqual(self.ctx.clock.now, 0)

    def test_request(self):
        self.track(status("Succeeded"))
        self.ctx.run()
        request = self.http.requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(request.url, "https://management.core.windows.net/sub/operations/op-1")
        self.assertEqual(request.headers["Accept"], "application/json")

    def test_custom_interval(self):
        self.http.route("GET", OPERATION, status("InProgress"), status("Succeeded"))
        track_operation(self.ctx, "op-1", self.rec, interval=1)
        self.ctx.run()
        self.assertEqual(self.ctx.clock.now, 1)

    def test_failed(self):
        tracker = self.track(status("InProgress"), status("Failed"))
        self.ctx.run()
        self.assertIsInstance(self.rec.error, OperationFailed)
        self.assertEqual(tracker.phase, Phase.failed)

    def test_unknown_status(self):
        tracker = self.track(status("Exploded"))
        self.ctx.run()
        self.assertIsInstance(self.rec.error, ProtocolViolation)
        self.assertEqual(tracker.phase, Phase.protocol_violation)

    def test_missing_status(self):
        self.track(response(200, "not a status", content_type="text/plain"))
        self.ctx.run()
        self.assertIsInstance(self.rec.error, ProtocolViolation)

    def test_transport_failure(self):
        tracker = self.track(status("InProgress"), ConnectionError("reset"))
        self.ctx.run()
        self.assertIsInstance(self.rec.error, StatusUnknown)
        self.assertIsInstance(self.rec.error.__cause__, TransportError)
        self.assertEqual(tracker.phase, Phase.transport_failure)
        self.assertEqual(tracker.polls, 2)

    def test_server_error(self):
        self.track(response(500, {"code": 500, "error": "Internal error"}))
        self.ctx.run()
        self.assertIsInstance(self.rec.error, StatusUnknown)
        self.assertIsInstance(self.rec.error.__cause__, ApplicationError)

    def test_cancel_while_waiting(self):
        tracker = self.track(status("InProgress"))
        self.ctx.reactor.call_later(2, tracker.cancel)
        self.ctx.run()
        self.assertIsInstance(self.rec.error, OperationCancelled)
        self.assertEqual(tracker.phase, Phase.cancelled)
        self.assertEqual(tracker.polls, 1)
        self.assertEqual(self.ctx.clock.now, 2)

    def test_cancel_before_response(self):
        tracker = self.track(status("Succeeded"))
        tracker.cancel()
        self.ctx.run()
        self.assertEqual(len(self.http.requests), 1)
        self.assertIsInstance(self.rec.error, OperationCancelled)

    def test_cancel_after_done(self):
        tracker = self.track(status("Succeeded"))
        self.ctx.run()
        tracker.cancel()
        self.assertIsNone(self.rec.error)
        self.assertEqual(tracker.phase, Phase.succeeded)


class TestRequestId(unittest.TestCase):

    def test_header(self):
        self.assertEqual(request_id(response(202, headers={"x-ms-request-id": "abc"})), "abc")

    def test_missing(self):
        self.assertIsNone(request_id(response(202)))

    def test_no_response(self):
        self.assertIsNone(request_id(None))


if __name__ == "__main__":
    unittest.main()
