import unittest

from ohmydashboard.model_identity import (
    FALLBACK_COLORS,
    MODEL_COLORS,
    canonical_model_name,
    model_color,
)


class ModelIdentityTests(unittest.TestCase):
    def test_canonical_model_strips_trailing_date_suffixes(self) -> None:
        self.assertEqual(
            canonical_model_name("claude-opus-4-5-20251101"),
            "claude-opus-4-5",
        )
        self.assertEqual(
            canonical_model_name("gpt-5-mini-2026-01-15"),
            "gpt-5-mini",
        )
        self.assertEqual(canonical_model_name(None), "")

    def test_known_models_use_brand_color(self) -> None:
        self.assertEqual(model_color("gemini-3-pro", 7), MODEL_COLORS["gemini-3-pro"])
        self.assertEqual(model_color("GPT-5-mini-2026-01-15", 0), MODEL_COLORS["gpt-5-mini"])

    def test_unknown_models_cycle_through_palette(self) -> None:
        self.assertEqual(model_color("local-llama", 0), FALLBACK_COLORS[0])
        self.assertEqual(model_color("local-llama", 12), FALLBACK_COLORS[2])


if __name__ == "__main__":
    unittest.main()
