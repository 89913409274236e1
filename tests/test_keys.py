import pytest

from sysstarter.keys import LaunchDataType, job_keys


def test_data_type_numbering_starts_at_one():
    assert LaunchDataType(1) is LaunchDataType.DICTIONARY
    assert LaunchDataType(2) is LaunchDataType.ARRAY


def test_data_types_are_consecutive():
    values = [member.value for member in LaunchDataType]
    looked_up = [LaunchDataType(number).value for number in range(1, len(values) + 1)]
    assert looked_up == values


def test_data_type_lookup_by_value():
    assert LaunchDataType(LaunchDataType.STRING.value) is LaunchDataType.STRING


def test_data_type_unknown_value_raises():
    with pytest.raises(ValueError):
        LaunchDataType(0)


def test_job_keys_begin_with_defaults_and_label():
    keys = job_keys()
    assert keys[0] == "__Defaults"
    assert keys[1] == "Label"


@pytest.mark.parametrize(
    "key", ["ProgramArguments", "KeepAlive", "RunAtLoad", "StartCalendarInterval"]
)
def test_job_keys_contain_top_level_keys(key):
    assert key in job_keys()


@pytest.mark.parametrize("key", ["Minute", "SockType", "SuccessfulExit", "CPU"])
def test_job_keys_exclude_nested_keys(key):
    assert key not in job_keys()


def test_job_keys_are_unique():
    keys = job_keys()
    assert len(set(keys)) == len(keys)


def test_job_keys_stable_between_calls():
    keys = job_keys()
    assert "Program" in keys
    assert list(keys) == list(job_keys())