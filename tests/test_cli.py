"""End-to-end tests for the j2vars command line."""

import os
import subprocess
import sys

import pytest

from j2vars import __version__


def j2vars(cwd, *args):
    env = {k: v for k, v in os.environ.items() if k != "J2VARS_DEBUG"}
    return subprocess.run(
        [sys.executable, "-m", "j2vars.main", *args],
        cwd=cwd,
        env=env,
        capture_output=True,
        text=True,
    )


@pytest.fixture
def project(tmp_path):
    """Write j2.yaml and t.j2 into tmp_path."""

    def write(config: str, template: str = "") -> None:
        (tmp_path / "j2.yaml").write_text(config, encoding="utf-8")
        (tmp_path / "t.j2").write_text(template, encoding="utf-8")

    return write


PARTIAL = "vars:\n  - name: ok\n    script: '1'\n  - name: bad\n    cmd: exit 1\n"


# =============================================================================
# Rendering
# =============================================================================


class TestRender:
    def test_success(self, tmp_path, project):
        """All producers resolve: exit 0 and the rendered text on stdout."""
        project(
            """
vars:
  - name: greeting
    script: '"Hello"'
  - name: who
    cmd: echo world
  - function: shout
    arguments:
      - name: s
    script: s | upper
""",
            "{{ greeting }}, {{ who | shout }}!",
        )

        result = j2vars(tmp_path, "-t", "t.j2")

        assert result.returncode == 0
        assert result.stdout == "Hello, WORLD!\n"
        assert result.stderr == ""

    def test_static_template(self, tmp_path, project):
        project("vars: []\n", "static")

        result = j2vars(tmp_path, "--template", "t.j2")

        assert result.returncode == 0
        assert result.stdout == "static\n"

    def test_partial_failure(self, tmp_path, project):
        """Failed producers leave holes, are reported on stderr, exit 2."""
        project(PARTIAL, "ok={{ ok }} bad=[{{ bad }}]")

        result = j2vars(tmp_path, "-t", "t.j2")

        assert result.returncode == 2
        assert result.stdout == "ok=1 bad=[]\n"
        assert "bad" in result.stderr
        assert "process" in result.stderr

    def test_allow_partial(self, tmp_path, project):
        project(PARTIAL, "{{ ok }}")

        result = j2vars(tmp_path, "-t", "t.j2", "--allow-partial")

        assert result.returncode == 0
        assert result.stdout == "1\n"

    def test_total_failure(self, tmp_path, project):
        project("vars:\n  - name: bad\n    cmd: exit 1\n", "{{ bad }}")

        result = j2vars(tmp_path, "-t", "t.j2", "--allow-partial")

        assert result.returncode == 1
        assert result.stdout == ""
        assert "no variable could be resolved" in result.stderr

    def test_render_error(self, tmp_path, project):
        project("vars: []\n", "{% if %}")

        result = j2vars(tmp_path, "-t", "t.j2")

        assert result.returncode == 1
        assert "t.j2:1:" in result.stderr

    def test_verbose_logs_summary(self, tmp_path, project):
        project("vars:\n  - name: x\n    script: '1'\n", "{{ x }}")

        result = j2vars(tmp_path, "-t", "t.j2", "-v")

        assert result.returncode == 0
        assert result.stdout == "1\n"
        assert "Resolved 1/1" in result.stderr


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    def test_missing_config(self, tmp_path):
        (tmp_path / "t.j2").write_text("x")

        result = j2vars(tmp_path, "-t", "t.j2")

        assert result.returncode == 1
        assert "Config file not found" in result.stderr

    def test_invalid_config(self, tmp_path, project):
        project("vars:\n  - name: x\n    cmd: a\n    cmds: [b]\n", "x")

        result = j2vars(tmp_path, "-t", "t.j2")

        assert result.returncode == 1
        assert "only one of" in result.stderr

    def test_missing_template(self, tmp_path, project):
        project("vars: []\n")

        result = j2vars(tmp_path, "-t", "nope.j2")

        assert result.returncode == 1
        assert "Template not found" in result.stderr

    def test_undecodable_template(self, tmp_path, project):
        project("vars: []\n")
        (tmp_path / "t.j2").write_bytes(b"\xff\xfe hi")

        result = j2vars(tmp_path, "-t", "t.j2")

        assert result.returncode == 1
        assert "Error: Cannot read template" in result.stderr
        assert "Traceback" not in result.stderr

    def test_config_is_a_directory(self, tmp_path):
        (tmp_path / "j2.yaml").mkdir()
        (tmp_path / "t.j2").write_text("x")

        result = j2vars(tmp_path, "-t", "t.j2")

        assert result.returncode == 1
        assert "Error: Cannot read config file" in result.stderr
        assert "Traceback" not in result.stderr

    def test_template_option_required(self, tmp_path, project):
        project("vars: []\n")

        result = j2vars(tmp_path)

        assert result.returncode == 1
        assert "--template" in result.stderr


# =============================================================================
# Info
# =============================================================================


class TestInfo:
    def test_info(self, tmp_path, project):
        project("vars: []\n")

        result = j2vars(tmp_path, "-i")

        assert result.returncode == 0
        assert f"j2vars v{__version__}" in result.stdout
        assert "Fallback shell: sh" in result.stdout
        assert "(found)" in result.stdout

    def test_info_without_config(self, tmp_path):
        result = j2vars(tmp_path, "--info")

        assert result.returncode == 0
        assert "(missing)" in result.stdout

    def test_version(self, tmp_path):
        result = j2vars(tmp_path, "--version")

        assert result.returncode == 0
        assert result.stdout.strip() == f"j2vars {__version__}"
