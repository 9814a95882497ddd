from __future__ import annotations

import pytest

from models.category import Category, normalize_category


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Model Releases", Category.MODEL_RELEASES),
        ("model_releases", Category.MODEL_RELEASES),
        ("  research ", Category.RESEARCH),
        ("AI-Policy", Category.AI_POLICY),
        ("regulation", Category.AI_POLICY),
        ("funding", Category.INDUSTRY),
        ("alignment", Category.AI_SAFETY),
        ("agents", Category.AI_AGENTS),
        (Category.INDUSTRY, Category.INDUSTRY),
    ],
)
def test_normalize_category_maps_variants(raw, expected) -> None:
    assert normalize_category(raw) is expected


@pytest.mark.parametrize("raw", [None, "", "   ", "Sports", 7])
def test_normalize_category_defaults_to_other(raw) -> None:
    assert normalize_category(raw) is Category.OTHER
