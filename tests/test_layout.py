from app.services.canvas_layout import (
    FALLBACK_OFFSET,
    find_non_overlapping_position,
    is_position_free,
    node_dimensions,
)


def test_free_spot_is_returned_unchanged():
    nodes = [{"type": "videoNode", "position": {"x": 0.0, "y": 0.0}}]
    assert find_non_overlapping_position({"x": 600, "y": 600}, "agentNode", nodes) == {"x": 600.0, "y": 600.0}


def test_sequential_drops_never_overlap():
    nodes = []
    for _ in range(6):
        position = find_non_overlapping_position({"x": 0, "y": 0}, "agentNode", nodes)
        assert is_position_free(position, "agentNode", nodes)
        nodes.append({"type": "agentNode", "position": position})

    assert len({(node["position"]["x"], node["position"]["y"]) for node in nodes}) == 6


def test_product_nodes_use_the_larger_footprint():
    assert node_dimensions("videoNode") == (200.0, 120.0)
    assert node_dimensions("agentNode") == (150.0, 50.0)
    nodes = [{"type": "videoNode", "position": {"x": 0.0, "y": 0.0}}]
    # Product height plus spacing is 140.
    assert not is_position_free({"x": 0, "y": 130}, "agentNode", nodes)
    assert is_position_free({"x": 0, "y": 140}, "agentNode", nodes)


def test_crowded_area_falls_back_to_fixed_offset():
    nodes = [
        {"type": "videoNode", "position": {"x": float(x), "y": float(y)}}
        for x in range(-800, 801, 100)
        for y in range(-800, 801, 100)
    ]

    position = find_non_overlapping_position({"x": 0, "y": 0}, "videoNode", nodes)

    assert position == {"x": FALLBACK_OFFSET[0], "y": FALLBACK_OFFSET[1]}
