"""
Tests for request classification.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_edge.app.routing import ConfigFlavor, RouteKind, canonical_id, classify, is_opaque_id

SUBSCRIBER_ID = "3f2b8c1e-9a4d-4e2f-8b6a-1c2d3e4f5a6b"


class TestOpaqueId:
    """Test identifier shape checks."""

    def test_accepts_canonical_shape(self):
        assert is_opaque_id(SUBSCRIBER_ID)

    def test_accepts_upper_case(self):
        assert is_opaque_id(SUBSCRIBER_ID.upper())

    @pytest.mark.parametrize("value", [
        "",
        "not-an-id",
        "3f2b8c1e9a4d4e2f8b6a1c2d3e4f5a6b",
        "3f2b8c1e-9a4d-4e2f-8b6a-1c2d3e4f5a6",
        "3f2b8c1e-9a4d-4e2f-8b6a-1c2d3e4f5a6bb",
        "zf2b8c1e-9a4d-4e2f-8b6a-1c2d3e4f5a6b",
    ])
    def test_rejects_other_shapes(self, value):
        assert not is_opaque_id(value)

    def test_canonical_id_lowercases(self):
        assert canonical_id(SUBSCRIBER_ID.upper()) == SUBSCRIBER_ID


class TestClassify:
    """Test route priority and variant selection."""

    def test_admin_api_takes_priority(self):
        route = classify("/admin/api/users")

        assert route.kind == RouteKind.ADMIN_API
        assert route.sub_path == "users"

    def test_admin_api_delete_path(self):
        route = classify(f"/admin/api/users/{SUBSCRIBER_ID}")

        assert route.kind == RouteKind.ADMIN_API
        assert route.sub_path == f"users/{SUBSCRIBER_ID}"

    def test_admin_api_root(self):
        assert classify("/admin/api").kind == RouteKind.ADMIN_API

    def test_admin_page(self):
        assert classify("/admin").kind == RouteKind.ADMIN_PAGE
        assert classify("/admin/dashboard").kind == RouteKind.ADMIN_PAGE

    def test_admin_wins_over_upgrade(self):
        assert classify("/admin/api/users", upgrade=True).kind == RouteKind.ADMIN_API

    def test_upgrade_with_valid_id_is_tunnel(self):
        route = classify(f"/{SUBSCRIBER_ID}", upgrade=True)

        assert route.kind == RouteKind.TUNNEL
        assert route.subscriber_id == SUBSCRIBER_ID

    def test_upgrade_id_is_canonicalized(self):
        route = classify(f"/{SUBSCRIBER_ID.upper()}", upgrade=True)

        assert route.kind == RouteKind.TUNNEL
        assert route.subscriber_id == SUBSCRIBER_ID

    @pytest.mark.parametrize("path", [
        "/",
        "/not-an-id",
        f"/{SUBSCRIBER_ID}/",
        f"/{SUBSCRIBER_ID}/info",
        f"/xray/{SUBSCRIBER_ID}",
        "/dns-query",
    ])
    def test_upgrade_with_other_path_is_rejected(self, path):
        route = classify(path, upgrade=True)

        assert route.kind == RouteKind.REJECTED_UPGRADE
        assert route.subscriber_id is None

    def test_subscriber_info(self):
        route = classify(f"/{SUBSCRIBER_ID}/info")

        assert route.kind == RouteKind.SUBSCRIBER_INFO
        assert route.subscriber_id == SUBSCRIBER_ID

    @pytest.mark.parametrize("suffix", ["", "/", "/script.js", "/style.css"])
    def test_subscriber_page_and_assets(self, suffix):
        route = classify(f"/{SUBSCRIBER_ID}{suffix}")

        assert route.kind == RouteKind.SUBSCRIBER_PAGE
        assert route.subscriber_id == SUBSCRIBER_ID
        assert route.sub_path == suffix

    @pytest.mark.parametrize("flavor", list(ConfigFlavor))
    def test_subscription_configs(self, flavor):
        route = classify(f"/{flavor.value}/{SUBSCRIBER_ID}")

        assert route.kind == RouteKind.SUBSCRIPTION_CONFIG
        assert route.flavor == flavor
        assert route.subscriber_id == SUBSCRIBER_ID

    def test_subscription_config_requires_valid_id(self):
        assert classify("/xray/not-an-id").kind == RouteKind.FALLBACK

    def test_dns_relay(self):
        assert classify("/dns-query").kind == RouteKind.DNS_RELAY

    @pytest.mark.parametrize("path", ["/panel", "/sub/abc", "/login", "/logout", "/secrets", "/favicon.ico"])
    def test_legacy_aliases(self, path):
        assert classify(path).kind == RouteKind.LEGACY

    @pytest.mark.parametrize("path", ["/", "/search", f"/{SUBSCRIBER_ID}/unknown", "/robots.txt"])
    def test_everything_else_falls_back(self, path):
        route = classify(path)

        assert route.kind == RouteKind.FALLBACK
        assert route.sub_path == path
