import math

import pytest

from home_tour.errors import InvalidParametersError
from home_tour.video_assembly.filter_graph import FilterGraph, format_value, node


@pytest.mark.parametrize("value,expected", [
    (True, "1"),
    (False, "0"),
    (24, "24"),
    (1.0, "1"),
    (0.75, "0.75"),
    (0.15, "0.15"),
    (-0.0, "0"),
    ("fade", "fade"),
    ("(ow-iw)/2", "(ow-iw)/2"),
    ("a:b", "'a:b'"),
])
def test_format_value(value, expected):
    assert format_value(value) == expected


def test_node_serializes_positional_then_named():
    scale = node('scale', 1920, 1080, force_original_aspect_ratio='decrease')
    assert scale.serialize() == 'scale=1920:1080:force_original_aspect_ratio=decrease'
    assert node('null').serialize() == 'null'


def test_chains_join_with_labels():
    graph = FilterGraph()
    graph.add([node('setsar', 1), node('fps', 24)], inputs=['0:v'], outputs=['v0'])
    graph.add([node('null')], inputs=['v0'], outputs=['vout'])

    assert graph.serialize() == '[0:v]setsar=1,fps=24[v0];[v0]null[vout]'
    assert str(graph) == graph.serialize()
    assert graph.output_labels == ['v0', 'vout']


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_non_finite_values_rejected(bad):
    with pytest.raises(InvalidParametersError):
        FilterGraph().add([node('xfade', duration=0.75, offset=bad)])


def test_empty_chain_rejected():
    with pytest.raises(InvalidParametersError):
        FilterGraph().add([])


def test_find_returns_matching_nodes():
    graph = FilterGraph().add([node('scale', 640, 360), node('format', 'yuv420p')])
    assert [n.args for n in graph.find('scale')] == [[640, 360]]
    assert graph.find('zoompan') == []
