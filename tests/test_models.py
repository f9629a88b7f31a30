"""Tests for offering and marketplace data types."""

import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import dataclasses

import pytest

from internal.models.types import InstanceSize, ProviderName, Service, ServicePlan


def _size(**overrides) -> InstanceSize:
    defaults = {
        "name": "M10",
        "available_regions": ("US_EAST_1", "EU_WEST_1"),
        "default_region": "EU_WEST_1",
    }
    defaults.update(overrides)
    return InstanceSize(**defaults)


def test_pick_region_prefers_default():
    assert _size().pick_region() == "EU_WEST_1"


def test_pick_region_falls_back_to_first():
    assert _size(default_region="").pick_region() == "US_EAST_1"


def test_pick_region_honours_request():
    assert _size().pick_region("US_EAST_1") == "US_EAST_1"


def test_pick_region_rejects_unavailable_request():
    assert _size().pick_region("AP_SOUTH_1") == ""


def test_pick_region_accepts_any_request_without_region_list():
    assert _size(available_regions=(), default_region="").pick_region("AP_SOUTH_1") == "AP_SOUTH_1"


def test_pick_region_nothing_known():
    assert _size(available_regions=(), default_region="").pick_region() == ""


def test_provider_name_is_string_valued():
    assert ProviderName("GCP") is ProviderName.GCP
    assert ProviderName.AZURE == "AZURE"


def test_service_is_immutable():
    service = Service(id="s", name="n", description="d")
    with pytest.raises(dataclasses.FrozenInstanceError):
        service.name = "other"


def test_service_defaults():
    service = Service(id="s", name="n", description="d", plans=(ServicePlan("p", "M10", "d"),))
    data = service.to_dict()
    assert data["bindable"] is True
    assert data["plan_updateable"] is True
    assert data["instances_retrievable"] is False
    assert data["bindings_retrievable"] is False
    assert data["plans"] == [{"id": "p", "name": "M10", "description": "d"}]
