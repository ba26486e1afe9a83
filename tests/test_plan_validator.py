import math
from pathlib import Path

import pytest

from home_tour.errors import InvalidParametersError
from home_tour.planning.plan_validator import room_distribution, validate_tour_inputs
from home_tour.planning.planning_models import CANONICAL_ROOM_ORDER, ImageDescriptor, RoomType

from .conftest import images_for


def test_complete_set_has_no_warnings():
    report = validate_tour_inputs(images_for(CANONICAL_ROOM_ORDER), 90)

    assert report.valid
    assert report.warnings == []
    assert report.image_count == 7
    assert report.estimated_ai_segments == 15
    assert report.estimated_pan_zoom_segments == 0
    assert report.estimated_cost == pytest.approx(7.5)


def test_small_set_without_key_rooms_warns_but_stays_valid():
    report = validate_tour_inputs(images_for([RoomType.BEDROOM, RoomType.BATHROOM]), 30)

    assert report.valid
    assert len(report.warnings) == 3
    assert report.warnings[0].startswith('Less than 6 images provided')
    assert any('exterior' in w for w in report.warnings)
    assert any('Kitchen photos are important' in w for w in report.warnings)


def test_large_set_warns():
    report = validate_tour_inputs(images_for(CANONICAL_ROOM_ORDER, per_room=6), 120)
    assert any(w.startswith('More than 40 images') for w in report.warnings)
    assert report.estimated_pan_zoom_segments == 42 - 15


def test_ai_estimate_follows_target_and_cap():
    images = images_for(CANONICAL_ROOM_ORDER, per_room=2)

    assert validate_tour_inputs(images, 20).estimated_ai_segments == 3
    assert validate_tour_inputs(images, 90, max_ai_segments=4).estimated_ai_segments == 4
    assert validate_tour_inputs(images, 90, cost_per_segment=1.0).estimated_cost == pytest.approx(15.0)


def test_distribution_counts_unlabeled_as_unknown():
    images = images_for([RoomType.KITCHEN], per_room=2) + [ImageDescriptor(path=Path('/photos/x.jpg'))]
    assert room_distribution(images) == {'kitchen': 2, 'unknown': 1}


@pytest.mark.parametrize("target", [0, -1, math.nan, math.inf])
def test_invalid_target_raises(target):
    with pytest.raises(InvalidParametersError):
        validate_tour_inputs(images_for([RoomType.KITCHEN]), target)
