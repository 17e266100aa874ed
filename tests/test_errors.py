import pytest

from moesched.errors import GpuError, InferenceError, ModelLoadError, SchedulerError


@pytest.mark.parametrize("cls", [ModelLoadError, InferenceError, GpuError])
def test_subclasses_are_caught_as_scheduler_error(cls):
    err = cls("details here")
    assert err.message == "details here"
    assert isinstance(err, SchedulerError)
    with pytest.raises(SchedulerError) as info:
        raise err
    assert info.value.message == "details here"


@pytest.mark.parametrize("cls", [SchedulerError, ModelLoadError, InferenceError, GpuError])
def test_str_carries_label_and_message(cls):
    err = cls("boom")
    assert str(err) == f"{cls.label}: boom"


def test_labels_are_distinct():
    rendered = {str(cls("x")) for cls in (SchedulerError, ModelLoadError, InferenceError, GpuError)}
    assert len(rendered) == 4


def test_inference_error_is_not_model_load_error():
    err = InferenceError("bad")
    assert err.message == "bad"
    assert not isinstance(err, ModelLoadError)
    assert str(err) == f"{InferenceError.label}: bad"


def test_args_hold_message():
    err = GpuError("out of memory")
    assert err.args == ("out of memory",)