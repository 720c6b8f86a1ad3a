"""Tests for best-effort container teardown."""

from __future__ import annotations

from unittest.mock import patch

from conftest import FakeManager, FakeRuntime, conf_text, unit_text

from extra_container.installer import publish
from extra_container.locator import locate
from extra_container.prober import probe
from extra_container.teardown import Teardown, clear_immutable


def _install(build, host, *names, auto_start=False):
    out = build.output({n: (unit_text(), conf_text(auto_start=auto_start)) for n in names})
    for d in locate(out, host):
        publish(d, host)


class TestDestroyInstalled:
    def test_removes_all_published_state(self, build, host):
        _install(build, host, "x", auto_start=True)
        manager = FakeManager(active=["container@x.service"])
        runtime = FakeRuntime()

        report = Teardown(host, manager, runtime).destroy(["x"])

        assert manager.ops("stop") == [("stop", ("container@x.service",), True)]
        assert manager.ops("kill") == [("kill", ("container@x.service",))]
        assert not host.wants_link("x").is_symlink()
        assert not host.service_link("x").is_symlink()
        for root in host.gcroot_links("x"):
            assert not root.is_symlink()
        assert runtime.destroyed == ["x"]
        assert probe("x", host) is None
        assert report.reloaded
        assert report.warnings == []

    def test_config_replaced_by_empty_placeholder(self, build, host):
        _install(build, host, "x")
        Teardown(host, FakeManager(), FakeRuntime()).destroy(["x"])
        config = host.config_link("x")
        assert not config.is_symlink()
        assert config.read_text() == ""

    def test_single_reload_for_batch(self, build, host):
        _install(build, host, "a", "b")
        manager = FakeManager()
        Teardown(host, manager, FakeRuntime()).destroy(["b", "a"])
        assert manager.ops("daemon-reload") == [("daemon-reload",)]

    def test_runtime_destroy_failure_is_a_warning(self, build, host):
        _install(build, host, "x")
        runtime = FakeRuntime()
        runtime.destroy_error = "Container x is declarative"
        report = Teardown(host, FakeManager(), runtime).destroy(["x"])
        assert [w.step for w in report.warnings] == ["runtime destroy"]
        assert report.destroyed == ["x"]


class TestDestroyMissing:
    def test_never_installed_yields_only_warnings(self, host):
        manager = FakeManager()
        manager.not_loaded = {"container@y.service"}
        runtime = FakeRuntime()
        runtime.destroy_error = "Container y does not exist"

        report = Teardown(host, manager, runtime).destroy(["y"])

        assert {w.step for w in report.warnings} == {"stop", "kill", "runtime destroy"}
        assert all(w.name == "y" for w in report.warnings)
        assert manager.ops("daemon-reload") == []
        assert not host.config_link("y").exists()
        assert report.destroyed == []

    def test_failure_on_one_does_not_stop_others(self, build, host):
        _install(build, host, "x")
        manager = FakeManager()
        manager.not_loaded = {"container@y.service"}
        report = Teardown(host, manager, FakeRuntime()).destroy(["y", "x"])
        assert report.destroyed == ["x"]
        assert [w.name for w in report.warnings] == ["y", "y"]
        assert probe("x", host) is None


class TestClearImmutable:
    def test_runs_chattr_on_markers(self, tmp_path):
        state = tmp_path / "x"
        (state / "var" / "empty").mkdir(parents=True)
        with patch("extra_container.teardown.run_command") as mock_run:
            cleared = clear_immutable(state)
        assert cleared == [state / "var" / "empty"]
        mock_run.assert_called_once_with(["chattr", "-i", str(state / "var" / "empty")])

    def test_no_markers_no_calls(self, tmp_path):
        with patch("extra_container.teardown.run_command") as mock_run:
            assert clear_immutable(tmp_path) == []
        mock_run.assert_not_called()

    def test_destroy_clears_state_dir_markers(self, build, host):
        _install(build, host, "x")
        (host.container_state_dir("x") / "var" / "empty").mkdir(parents=True)
        with patch("extra_container.teardown.run_command") as mock_run:
            Teardown(host, FakeManager(), FakeRuntime()).destroy(["x"])
        mock_run.assert_called_once()

    def test_nested_container_markers_are_cleared(self, tmp_path):
        state = tmp_path / "outer"
        outer = state / "var" / "empty"
        inner = state / "var" / "lib" / "nixos-containers" / "inner" / "var" / "empty"
        outer.mkdir(parents=True)
        inner.mkdir(parents=True)
        with patch("extra_container.teardown.run_command") as mock_run:
            cleared = clear_immutable(state)
        assert sorted(cleared) == sorted([outer, inner])
        assert sorted(c.args[0][2] for c in mock_run.call_args_list) == sorted(
            [str(outer), str(inner)]
        )

    def test_symlinked_marker_is_skipped(self, tmp_path):
        target = tmp_path / "elsewhere"
        target.mkdir()
        state = tmp_path / "x"
        (state / "var").mkdir(parents=True)
        (state / "var" / "empty").symlink_to(target)
        with patch("extra_container.teardown.run_command") as mock_run:
            assert clear_immutable(state) == []
        mock_run.assert_not_called()
