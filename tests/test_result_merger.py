import struct

import pytest

from moesched.errors import InferenceError
from moesched.model_downloader import ModelInfo
from moesched.result_merger import ResultMerger
from moesched.routing import GateWeights
from moesched.strategy import ByBatch, ByExpert, ByLayer, Hybrid


def make_merger(num_experts=2, num_layers=4):
    return ResultMerger(
        ModelInfo(
            model_type="switch_transformer",
            num_experts=num_experts,
            hidden_size=128,
            intermediate_size=512,
            num_layers=num_layers,
        )
    )


def floats(*values):
    return struct.pack(f"<{len(values)}f", *values)


def unpack(data):
    return list(struct.unpack(f"<{len(data) // 4}f", data))


def test_merge_expert_results_weighted_sum():
    merger = make_merger()
    results = [
        b"".join(struct.pack("<f", float(i * 10 + j)) for j in range(32))
        for i in range(2)
    ]
    merged = merger.merge_expert_results(results, GateWeights([0.7, 0.3], 2))
    assert len(merged) == 128
    assert unpack(merged) == pytest.approx([j + 3.0 for j in range(32)], rel=1e-6)


def test_expert_merge_requires_gate_weights():
    merger = make_merger()
    with pytest.raises(InferenceError):
        merger.merge_expert_results([floats(1.0), floats(2.0)], None)


def test_expert_merge_rejects_wrong_counts():
    merger = make_merger()
    with pytest.raises(InferenceError):
        merger.merge_expert_results([floats(1.0)], GateWeights([1.0, 0.0], 1))
    with pytest.raises(InferenceError):
        merger.merge_expert_results([floats(1.0), floats(2.0)], GateWeights([1.0], 1))
    with pytest.raises(InferenceError):
        merger.merge_expert_results([], GateWeights([1.0, 0.0], 1))


def test_expert_merge_rejects_uneven_sizes():
    merger = make_merger()
    with pytest.raises(InferenceError):
        merger.merge_expert_results([floats(1.0, 2.0), floats(1.0)], GateWeights([0.5, 0.5], 2))


def test_layer_merge_adds_residuals():
    merger = make_merger(num_layers=3)
    merged = merger.merge_layer_results([floats(1.0, 2.0), floats(0.5, 0.5), floats(1.0, -1.0)])
    assert unpack(merged) == [2.5, 1.5]


def test_layer_merge_keeps_trailing_bytes_of_first_layer():
    merger = make_merger(num_layers=2)
    merged = merger.merge_layer_results([floats(1.0) + b"\x07", floats(2.0) + b"\x09"])
    assert merged == floats(3.0) + b"\x07"


def test_layer_merge_errors():
    merger = make_merger(num_layers=2)
    with pytest.raises(InferenceError):
        merger.merge_layer_results([floats(1.0)])
    with pytest.raises(InferenceError):
        merger.merge_layer_results([floats(1.0), floats(1.0, 2.0)])
    with pytest.raises(InferenceError):
        merger.merge_layer_results([])


def test_batch_merge_concatenates():
    merger = make_merger()
    assert merger.merge_batch_results([b"ab", b"cd", b"e\x00"]) == b"abcde\x00"
    with pytest.raises(InferenceError):
        merger.merge_batch_results([])


def test_hybrid_merge():
    merger = make_merger(num_experts=2, num_layers=2)
    results = [floats(2.0), floats(4.0), floats(10.0), floats(20.0)]
    merged = merger.merge_hybrid_results(results, GateWeights([0.5, 0.5], 2))
    assert unpack(merged) == [18.0]


def test_hybrid_merge_count_mismatch():
    merger = make_merger(num_experts=2, num_layers=2)
    with pytest.raises(InferenceError):
        merger.merge_hybrid_results([floats(1.0)] * 3, GateWeights([0.5, 0.5], 2))


def test_merge_results_dispatches_on_strategy():
    merger = make_merger(num_experts=2, num_layers=2)
    weights = GateWeights([1.0, 0.0], 1)
    assert unpack(merger.merge_results([floats(3.0), floats(9.0)], weights, ByExpert())) == [3.0]
    assert unpack(merger.merge_results([floats(3.0), floats(9.0)], None, ByLayer())) == [12.0]
    assert merger.merge_results([b"x", b"y"], None, ByBatch(4)) == b"xy"
    hybrid = merger.merge_results([floats(1.0), floats(5.0), floats(2.0), floats(6.0)], weights, Hybrid(True, True))
    assert unpack(hybrid) == [3.0]


def test_merge_results_rejects_unknown_strategy():
    with pytest.raises(TypeError):
        make_merger().merge_results([b"x"], None, object())