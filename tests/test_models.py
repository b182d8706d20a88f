import pytest
from hypothesis import given
from hypothesis import strategies as st

from autolaunch.models import (
    Dependency,
    ExecutionStatus,
    SnapshotMetadata,
    StackKind,
    TechStack,
    TrustLevel,
)


def test_tech_stack_str_with_version():
    assert str(TechStack.node_js("18")) == "NodeJs(18)"


def test_tech_stack_str_without_version():
    assert str(TechStack.python()) == "Python(unknown)"
    assert str(TechStack.unknown()) == "Unknown"


def test_docker_stack_str():
    assert str(TechStack.docker(True)) == "Docker(compose: true)"
    assert str(TechStack.docker(False)) == "Docker(compose: false)"


def test_tech_stack_external_tagging():
    assert TechStack.rust("2021").to_dict() == {"Rust": {"edition": "2021"}}
    assert TechStack.unknown().to_dict() == "Unknown"


stacks = st.one_of(
    st.builds(
        TechStack,
        st.sampled_from([k for k in StackKind if k not in (StackKind.UNKNOWN, StackKind.DOCKER)]),
        st.one_of(st.none(), st.text(max_size=8)),
    ),
    st.builds(TechStack.docker, st.booleans()),
    st.just(TechStack.unknown()),
)


@given(stacks)
def test_tech_stack_dict_round_trip(stack):
    assert TechStack.from_dict(stack.to_dict()) == stack


@pytest.mark.parametrize("bad", ["Nope", {"Cobol": {}}, {"NodeJs": {}, "Go": {}}, 3])
def test_tech_stack_from_dict_rejects_garbage(bad):
    with pytest.raises(ValueError):
        TechStack.from_dict(bad)


@pytest.mark.parametrize(
    "stored, expected",
    [
        ("Trusted", TrustLevel.TRUSTED),
        ("TRUSTED", TrustLevel.TRUSTED),
        ("untrusted", TrustLevel.UNTRUSTED),
        ("Unknown", TrustLevel.UNKNOWN),
        ("whatever", TrustLevel.UNKNOWN),
    ],
)
def test_trust_level_from_stored_value(stored, expected):
    assert TrustLevel.from_stored_value(stored) is expected


@pytest.mark.parametrize("level", list(TrustLevel))
def test_trust_level_str_round_trip(level):
    assert TrustLevel.from_stored_value(str(level)) is level


def test_execution_status_failed_carries_error():
    status = ExecutionStatus.failed("boom")
    assert status.state == "Failed"
    assert status.error == "boom"
    assert not status.is_active


@pytest.mark.parametrize(
    "state, active",
    [
        ("Running", True),
        ("Starting", True),
        ("Stopped", False),
        ("Stopping", False),
        ("Preparing", False),
    ],
)
def test_execution_status_active_states(state, active):
    status = ExecutionStatus(state)
    assert status.is_active is active
    assert str(status) == state


def test_execution_status_rejects_invalid():
    with pytest.raises(ValueError):
        ExecutionStatus("Sleeping")
    with pytest.raises(ValueError):
        ExecutionStatus("Running", "oops")
    with pytest.raises(ValueError):
        ExecutionStatus("Failed")


def test_snapshot_metadata_round_trip():
    metadata = SnapshotMetadata(
        entry_command="npm start",
        ports=[3000, 8080],
        environment_variables=[("NODE_ENV", "development")],
        dependencies=[Dependency("react", "^18.0.0"), Dependency("typescript", None, True)],
        tech_stack=str(TechStack.node_js()),
    )
    assert SnapshotMetadata.from_json(metadata.to_json()) == metadata


def test_dependency_defaults():
    dep = Dependency("numpy")
    assert dep.version is None
    assert dep.dev is False