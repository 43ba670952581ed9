"""Tests for Stripe bracket-notation parameter flattening."""

from __future__ import annotations

from pin_stripe.encoding import flatten_params


class TestFlattenParams:
    def test_flat_scalars(self):
        assert flatten_params({"email": "a@b.com", "limit": 10}) == [
            ("email", "a@b.com"),
            ("limit", "10"),
        ]

    def test_nested_mapping(self):
        assert flatten_params({"metadata": {"order": "42", "source": "web"}}) == [
            ("metadata[order]", "42"),
            ("metadata[source]", "web"),
        ]

    def test_list_is_indexed(self):
        assert flatten_params({"expand": ["customer", "invoice"]}) == [
            ("expand[0]", "customer"),
            ("expand[1]", "invoice"),
        ]

    def test_list_of_mappings(self):
        params = {"items": [{"price": "price_1", "quantity": 2}]}
        assert flatten_params(params) == [
            ("items[0][price]", "price_1"),
            ("items[0][quantity]", "2"),
        ]

    def test_booleans_are_lowercase(self):
        assert flatten_params({"livemode": False, "active": True}) == [
            ("livemode", "false"),
            ("active", "true"),
        ]

    def test_none_is_dropped(self):
        assert flatten_params({"name": None, "email": "x"}) == [("email", "x")]

    def test_empty_string_is_kept(self):
        assert flatten_params({"description": ""}) == [("description", "")]

    def test_no_params(self):
        assert flatten_params(None) == []
        assert flatten_params({}) == []
