import dataclasses

import pytest

from moesched.routing import ExpertGpuMapping, GateWeights


def test_gate_weights_store_floats_as_tuple():
    gate = GateWeights([0.7, 0.3], top_k=2)
    assert gate.weights == (0.7, 0.3)
    assert gate.top_k == 2


def test_gate_weights_accept_generators_and_ints():
    gate = GateWeights((w for w in [1, 0]), top_k=1)
    assert gate.weights == (1.0, 0.0)
    assert all(isinstance(w, float) for w in gate.weights)


def test_gate_weights_equality_and_hash():
    assert GateWeights([0.5, 0.5], 2) == GateWeights((0.5, 0.5), 2)
    assert hash(GateWeights([0.5], 1)) == hash(GateWeights([0.5], 1))


def test_gate_weights_frozen():
    gate = GateWeights([1.0], 1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        gate.top_k = 3
    assert gate.top_k == 1
    assert gate.weights == (1.0,)


def test_expert_mapping_fields():
    mapping = ExpertGpuMapping(expert_id=3, gpu_id=1, memory_required=2048)
    assert (mapping.expert_id, mapping.gpu_id, mapping.memory_required) == (3, 1, 2048)
    with pytest.raises(dataclasses.FrozenInstanceError):
        mapping.gpu_id = 0