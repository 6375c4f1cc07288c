import unittest

from ohmydashboard.observability import otel


class ObservabilityTests(unittest.TestCase):
    def test_signal_endpoint_does_not_double_version_prefix(self) -> None:
        self.assertEqual(otel._signal_endpoint("http://collector:4318", "/v1/traces"), "http://collector:4318/v1/traces")
        self.assertEqual(otel._signal_endpoint("http://collector:4318/v1/", "/v1/metrics"), "http://collector:4318/v1/metrics")
        self.assertEqual(otel._signal_endpoint("http://collector:4318/v1/traces", "/v1/traces"), "http://collector:4318/v1/traces")
        self.assertEqual(otel._signal_endpoint("", "/v1/traces"), "")

    def test_recording_is_a_no_op_when_disabled(self) -> None:
        otel.record_read("session", "json", "ok", 1.5)
        otel.record_cache_lookup("messages:ses_1", hit=False)
        otel.record_query_fallback("driver_error")
        with otel.start_span("reader.fetch", {"cache.key": "sessions"}) as span:
            self.assertIsNone(span)

    def test_empty_labels_become_unknown(self) -> None:
        self.assertEqual(otel._labels(record="", backend="json"), {"record": "unknown", "backend": "json"})


if __name__ == "__main__":
    unittest.main()
