"""Tests for the local pre-push gate."""

import pytest

from conftest import FakeInvoker
from qualitygate.dsl import environment, pipeline, sh
from qualitygate.errors import ConfigurationError
from qualitygate.local_gate import local_job, local_steps, run_local_gate
from qualitygate.result import JobState


class TestLocalSteps:
    def test_prefix_of_full_pipeline(self, sample_pipeline):
        assert [s.name for s in local_steps(sample_pipeline)] == ["format", "lint", "doc"]

    def test_no_environment_concept(self, sample_pipeline):
        job = local_job(sample_pipeline)
        assert job.environment.name == "local"
        assert job.environment.attrs == {}

    def test_carries_pipeline_scopes(self):
        p = pipeline(
            "p",
            sh("fmt", "fmt", pre_push=True),
            environments=[environment("linux")],
            env={"G": "1"},
            job_env={"RUSTDOCFLAGS": "-Dwarnings"},
        )
        job = local_job(p)
        assert job.global_env == {"G": "1"}
        assert job.env == {"RUSTDOCFLAGS": "-Dwarnings"}

    def test_must_be_a_prefix(self):
        p = pipeline(
            "p",
            sh("fmt", "fmt", pre_push=True),
            sh("build", "build"),
            sh("doc", "doc", pre_push=True),
            environments=[environment("linux")],
        )
        with pytest.raises(ConfigurationError, match="leading steps"):
            local_steps(p)

    def test_must_be_unconditional(self):
        p = pipeline(
            "p",
            sh("fmt", "fmt", pre_push=True, when="os == 'Linux'"),
            environments=[environment("linux", os="Linux")],
        )
        with pytest.raises(ConfigurationError, match="must not depend on the environment"):
            local_steps(p)

    def test_needs_at_least_one_step(self):
        p = pipeline("p", sh("build", "build"), environments=[environment("linux")])
        with pytest.raises(ConfigurationError, match="no steps for the pre-push gate"):
            local_steps(p)

    def test_pipeline_is_validated_too(self):
        p = pipeline("p", sh("fmt", "fmt", pre_push=True), environments=[])
        with pytest.raises(ConfigurationError):
            local_steps(p)


class TestRunLocalGate:
    def test_passes(self, sample_pipeline):
        fake = FakeInvoker()
        result = run_local_gate(sample_pipeline, invoker=fake)
        assert result.passed
        assert [name for _w, name, _e in fake.calls] == ["format", "lint", "doc"]

    def test_lint_failure_stops_doc(self, sample_pipeline):
        fake = FakeInvoker(failures={(None, "lint"): 1})
        result = run_local_gate(sample_pipeline, invoker=fake)
        assert [name for _w, name, _e in fake.calls] == ["format", "lint"]
        assert result.state is JobState.FAILED
        assert result.failed_step == "lint"
