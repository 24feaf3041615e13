import pytest

from gpxview.config import load_config
from gpxview.errors import ConfigError

ENV = [
    "GPXVIEW_POOL_SIZE",
    "GPXVIEW_START_METHOD",
    "GPXVIEW_USE_CONVERTER",
    "GPXVIEW_PROFILE_THRESHOLD",
    "GPXVIEW_PROFILE_TARGET",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV:
        monkeypatch.delenv(var, raising=False)


def load(tmp_path, repo_text=None, user_text=None):
    repo = tmp_path / "repo.toml"
    user = tmp_path / "user.toml"
    if repo_text is not None:
        repo.write_text(repo_text, encoding="utf-8")
    if user_text is not None:
        user.write_text(user_text, encoding="utf-8")
    return load_config(repo_root=tmp_path, repo_config_path=repo, user_config_path=user)


def test_defaults(tmp_path):
    cfg = load(tmp_path)
    assert cfg.pool.size is None
    assert cfg.pool.start_method is None
    assert cfg.parse.use_converter is True
    assert (cfg.profile.threshold, cfg.profile.target) == (5000, 2000)
    assert set(cfg.source.values()) == {"default"}


def test_user_overrides_repo(tmp_path):
    cfg = load(
        tmp_path,
        repo_text="[pool]\nsize = 2\nstart_method = 'spawn'\n[profile]\ntarget = 500\n",
        user_text="[pool]\nsize = 6\n",
    )
    assert cfg.pool.size == 6
    assert cfg.pool.start_method == "spawn"
    assert cfg.profile.target == 500
    assert cfg.source["pool.size"].startswith("user:")
    assert cfg.source["pool.start_method"].startswith("repo:")


def test_env_overrides_files(tmp_path, monkeypatch):
    monkeypatch.setenv("GPXVIEW_POOL_SIZE", "3")
    monkeypatch.setenv("GPXVIEW_USE_CONVERTER", "off")
    cfg = load(tmp_path, user_text="[pool]\nsize = 6\n[parse]\nuse_converter = true\n")
    assert cfg.pool.size == 3
    assert cfg.parse.use_converter is False
    assert cfg.source["pool.size"] == "env:GPXVIEW_POOL_SIZE"


@pytest.mark.parametrize("value", ["0", "-2", "many", ""])
def test_invalid_values_are_ignored(tmp_path, monkeypatch, value):
    monkeypatch.setenv("GPXVIEW_POOL_SIZE", value)
    monkeypatch.setenv("GPXVIEW_START_METHOD", "threads")
    cfg = load(tmp_path)
    assert cfg.pool.size is None
    assert cfg.pool.start_method is None


def test_malformed_toml_fails_loudly(tmp_path):
    with pytest.raises(ConfigError, match="Failed to parse TOML config"):
        load(tmp_path, user_text="[pool\nsize = ")
