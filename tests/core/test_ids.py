"""Tests for core.ids - identifier and path utilities"""

import re

from hookrelay.core.ids import (
    generate_request_id,
    make_event_id,
    make_run_id,
    resolve_project_dir,
    short_id,
    socket_path,
    subagent_actor_id,
)


class TestGenerateRequestId:
    """Test generate_request_id function"""

    def test_shape(self):
        """Id is <epoch_ms>-<7 base36 chars>"""
        request_id = generate_request_id(1718000000000)
        assert re.fullmatch(r"1718000000000-[0-9a-z]{7}", request_id)

    def test_defaults_to_now(self):
        """Without ts the prefix is the current time"""
        prefix = int(generate_request_id().split("-")[0])
        assert prefix > 1_700_000_000_000

    def test_unique(self):
        """Ids generated at the same ms should not collide"""
        ids = {generate_request_id(1) for _ in range(200)}
        assert len(ids) == 200


class TestCompositeIds:
    """Test run / event / actor id builders"""

    def test_run_id(self):
        assert make_run_id("sess-1", 3) == "sess-1:R3"

    def test_event_id(self):
        assert make_event_id("sess-1:R3", 7) == "sess-1:R3:E7"

    def test_subagent_actor_id(self):
        assert subagent_actor_id("a1") == "subagent:a1"


class TestShortId:
    """Test short_id function"""

    def test_request_id_keeps_random_suffix(self):
        """Request ids drop the shared timestamp prefix"""
        assert short_id("1718000000000-k3j9x0a") == "k3j9x0a"

    def test_plain_id_truncated(self):
        assert short_id("abcdefghijkl") == "abcdefgh"

    def test_custom_length(self):
        assert short_id("abcdefghijkl", 4) == "abcd"

    def test_empty_string(self):
        assert short_id("") == ""


class TestSocketPath:
    """Test socket path derivation"""

    def test_default_name(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HOOKRELAY_INSTANCE_ID", raising=False)
        assert socket_path(tmp_path) == tmp_path / ".claude" / "run" / "hookrelay.sock"

    def test_instance_name(self, tmp_path):
        path = socket_path(tmp_path, "b")
        assert path.name == "hookrelay-b.sock"

    def test_instance_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOOKRELAY_INSTANCE_ID", "env1")
        assert socket_path(tmp_path).name == "hookrelay-env1.sock"

    def test_empty_instance_ignores_env(self, tmp_path, monkeypatch):
        """Explicit empty instance id means no instance suffix"""
        monkeypatch.setenv("HOOKRELAY_INSTANCE_ID", "env1")
        assert socket_path(tmp_path, "").name == "hookrelay.sock"


class TestResolveProjectDir:
    """Test resolve_project_dir function"""

    def test_explicit_cwd_wins(self, monkeypatch):
        monkeypatch.setenv("CLAUDE_PROJECT_DIR", "/from/env")
        assert str(resolve_project_dir("/from/payload")) == "/from/payload"

    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv("CLAUDE_PROJECT_DIR", "/from/env")
        assert str(resolve_project_dir()) == "/from/env"

    def test_process_cwd_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("CLAUDE_PROJECT_DIR", raising=False)
        monkeypatch.chdir(tmp_path)
        assert resolve_project_dir() == tmp_path
