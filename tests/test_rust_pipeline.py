"""Tests for the stock Rust pipeline."""

from conftest import FakeInvoker
from qualitygate.local_gate import local_steps, run_local_gate
from qualitygate.matrix import expand
from qualitygate.runner import run_pipeline
from qualitygate.step_workflows.rust import rust_pipeline


def _names(job):
    return [s.name for s in job.steps]


class TestRustPipeline:
    def test_matrix(self):
        jobs = {j.environment.name: j for j in expand(rust_pipeline())}
        assert set(jobs) == {"ubuntu-latest", "macos-latest", "windows-latest"}

        common = ["cargo fmt", "Clippy", "cargo doc", "Build", "Run tests"]
        assert _names(jobs["ubuntu-latest"]) == common + [
            "Install nightly toolchain",
            "Check for memory leaks",
        ]
        assert _names(jobs["macos-latest"]) == common
        assert _names(jobs["windows-latest"]) == common

    def test_tests_run_twice_on_linux(self):
        [linux] = [j for j in expand(rust_pipeline()) if j.environment.name == "ubuntu-latest"]
        test_runs = [s for s in linux.steps if "test" in s.args]
        assert len(test_runs) == 2

    def test_scopes(self):
        [linux, *_] = expand(rust_pipeline())
        leak = linux.steps[-1]
        assert linux.env_for(leak) == {
            "CARGO_TERM_COLOR": "always",
            "RUSTDOCFLAGS": "-Dwarnings",
            "RUSTFLAGS": "-Z sanitizer=leak",
        }
        assert linux.env_for(linux.steps[0]) == {
            "CARGO_TERM_COLOR": "always",
            "RUSTDOCFLAGS": "-Dwarnings",
        }

    def test_commands(self):
        steps = {s.name: s for s in rust_pipeline().steps}
        assert steps["cargo fmt"].command_line == (
            "cargo fmt -- --check --verbose --config format_code_in_doc_comments=true "
            "--config wrap_comments=true"
        )
        assert steps["Clippy"].command_line == "cargo clippy -- -D warnings"
        assert steps["Check for memory leaks"].command_line == "rustup run nightly cargo test --verbose"

    def test_local_gate(self):
        assert [s.name for s in local_steps(rust_pipeline())] == ["cargo fmt", "Clippy", "cargo doc"]

    def test_clippy_failure_blocks_push(self):
        fake = FakeInvoker(failures={(None, "Clippy"): 101})
        result = run_local_gate(rust_pipeline(), invoker=fake)
        assert not result.passed
        assert [name for _w, name, _e in fake.calls] == ["cargo fmt", "Clippy"]

    def test_full_run_with_fake_tools(self):
        verdict = run_pipeline(rust_pipeline(), invoker=FakeInvoker())
        assert verdict.passed
        assert len(verdict.jobs) == 3
