import struct

import pytest

from moesched.data_preparator import DataPreparator
from moesched.errors import InferenceError
from moesched.model_downloader import ModelInfo


@pytest.fixture
def preparator():
    info = ModelInfo(
        model_type="switch_transformer",
        num_experts=4,
        hidden_size=256,
        intermediate_size=1024,
        num_layers=6,
    )
    return DataPreparator(info)


INPUT = bytes([1, 2, 3, 4, 5, 6, 7, 8])


def test_prepared_data_is_longer_than_input(preparator):
    expert_data = preparator.prepare_expert_data(INPUT, 1)
    assert len(expert_data) > len(INPUT)
    layer_data = preparator.prepare_layer_data(INPUT, 2)
    assert len(layer_data) > len(INPUT)


def test_expert_data_layout(preparator):
    data = preparator.prepare_expert_data(INPUT, 1)
    assert len(data) == 4 + 4 * 8 + len(INPUT)
    assert data[:4] == b"\x01\x00\x00\x00"
    assert struct.unpack("<4d", data[4:36]) == (0.0, 1.0, 0.0, 0.0)
    assert data[36:] == INPUT


def test_layer_data_layout(preparator):
    data = preparator.prepare_layer_data(INPUT, 2)
    assert len(data) == 4 + 16 + len(INPUT)
    assert struct.unpack("<I", data[:4]) == (2,)
    assert struct.unpack("<4I", data[4:20]) == (2, 256, 1024, 4)
    assert data[20:] == INPUT


def test_layer_expert_data_layout(preparator):
    data = preparator.prepare_layer_expert_data(INPUT, 5, 3)
    assert struct.unpack("<2I", data[:8]) == (5, 3)
    assert struct.unpack("<4d", data[8:40]) == (0.0, 0.0, 0.0, 1.0)
    assert struct.unpack("<4I", data[40:56]) == (5, 256, 1024, 4)
    assert data[56:] == INPUT


def test_gate_info_is_one_hot(preparator):
    assert struct.unpack("<4d", preparator.gate_info(0)) == (1.0, 0.0, 0.0, 0.0)


def test_layer_config_values(preparator):
    assert preparator.layer_config(0) == struct.pack("<4I", 0, 256, 1024, 4)


@pytest.mark.parametrize("expert_id", [4, 10, -1])
def test_expert_out_of_range(preparator, expert_id):
    with pytest.raises(InferenceError):
        preparator.prepare_expert_data(INPUT, expert_id)


@pytest.mark.parametrize("layer_id", [6, 100, -1])
def test_layer_out_of_range(preparator, layer_id):
    with pytest.raises(InferenceError):
        preparator.prepare_layer_data(INPUT, layer_id)


def test_layer_expert_checks_both_ids(preparator):
    with pytest.raises(InferenceError):
        preparator.prepare_layer_expert_data(INPUT, 6, 0)
    with pytest.raises(InferenceError):
        preparator.prepare_layer_expert_data(INPUT, 0, 4)