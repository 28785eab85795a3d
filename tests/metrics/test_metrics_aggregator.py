import threading
import unittest

from src.metrics.aggregator import MetricsAggregator


class MetricsAggregatorTests(unittest.TestCase):
    def setUp(self):
        self.metrics = MetricsAggregator()

    def test_hostname_averages(self):
        self.metrics.record_cleaning("a.example", reduction_percent=40, duration_ms=10.0)
        self.metrics.record_cleaning("a.example", reduction_percent=20, duration_ms=30.0)
        self.metrics.record_error("a.example", "boom", duration_ms=20.0)

        stats = self.metrics.hostname_stats("a.example")
        self.assertEqual(stats["operations"], 3)
        self.assertEqual(stats["cleanings"], 2)
        self.assertEqual(stats["errors"], 1)
        self.assertEqual(stats["average_reduction"], 30.0)
        self.assertEqual(stats["average_duration_ms"], 20.0)
        self.assertAlmostEqual(stats["error_rate"], 0.3333)
        self.assertIsNone(self.metrics.hostname_stats("missing.example"))

    def test_empty_hostname_is_grouped_as_unknown(self):
        self.metrics.record_scoring("", 80, 1.0)
        self.assertEqual(self.metrics.hostname_stats("unknown")["average_quality"], 80.0)

    def test_summary(self):
        self.metrics.record_cleaning("a.example", reduction_percent=50, duration_ms=4.0, rule_reductions={"base-rules": 50})
        self.metrics.record_error("b.example", "boom")
        self.metrics.record_scoring("a.example", 70, 1.0)
        self.metrics.record_scoring("b.example", 90, 1.0)

        summary = self.metrics.summary()
        self.assertEqual(summary["total_operations"], 2)
        self.assertEqual(summary["successful_cleanings"], 1)
        self.assertEqual(summary["errors"], 1)
        self.assertEqual(summary["success_rate"], 50.0)
        self.assertEqual(summary["average_reduction"], 50.0)
        self.assertEqual(summary["average_cleaning_time_ms"], 2.0)
        self.assertEqual(summary["average_quality"], 80.0)
        self.assertEqual(summary["unique_hostnames"], 2)
        self.assertEqual(summary["active_rules"], 1)

    def test_problematic_hostnames_order(self):
        self.metrics.record_cleaning("good.example", reduction_percent=60, duration_ms=1)
        self.metrics.record_cleaning("weak.example", reduction_percent=5, duration_ms=1)
        self.metrics.record_error("bad.example", "boom")

        ranked = [entry["hostname"] for entry in self.metrics.problematic_hostnames()]
        self.assertEqual(ranked, ["bad.example", "weak.example", "good.example"])
        self.assertEqual(len(self.metrics.problematic_hostnames(limit=1)), 1)

    def test_most_effective_rules_order(self):
        self.metrics.record_cleaning(
            "a.example",
            reduction_percent=30,
            duration_ms=1,
            rule_reductions={"base-rules": 20, "ecommerce-rules": 10},
            removed_elements={"base-rules": 12, "ecommerce-rules": 4},
        )
        self.metrics.record_cleaning("b.example", reduction_percent=10, duration_ms=1, rule_reductions={"base-rules": 10})

        rules = self.metrics.most_effective_rules()
        self.assertEqual([entry["rule"] for entry in rules], ["base-rules", "ecommerce-rules"])
        self.assertEqual(rules[0]["applications"], 2)
        self.assertEqual(rules[0]["average_reduction"], 15.0)
        self.assertEqual(rules[0]["removed_elements"], 12)

    def test_export_and_reset(self):
        self.metrics.record_cleaning("a.example", reduction_percent=10, duration_ms=1, rule_reductions={"r": 10})
        exported = self.metrics.export()
        self.assertIn("a.example", exported["hostnames"])
        self.assertIn("r", exported["rules"])
        self.assertEqual(exported["summary"]["total_operations"], 1)

        self.metrics.reset()
        self.assertEqual(self.metrics.summary()["total_operations"], 0)
        self.assertEqual(self.metrics.most_effective_rules(), [])

    def test_concurrent_updates_are_not_lost(self):
        def work():
            for _ in range(500):
                self.metrics.record_cleaning("a.example", reduction_percent=1, duration_ms=1, rule_reductions={"r": 1})

        threads = [threading.Thread(target=work) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(self.metrics.hostname_stats("a.example")["operations"], 4000)
        self.assertEqual(self.metrics.most_effective_rules()[0]["applications"], 4000)

    def test_log_summary_runs_on_empty_state(self):
        self.metrics.log_summary()


if __name__ == "__main__":
    unittest.main()
