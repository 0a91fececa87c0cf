import pathlib

import tabloop.__main__
import tabloop.persistence


def test_load_config_missing_file_gives_defaults (tmp_path: pathlib.Path) -> None:

	assert tabloop.__main__.load_config(str(tmp_path / "missing.yaml")) == {}


def test_load_config_reads_yaml (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "config.yaml"
	path.write_text("sequencer:\n  initial_bpm: 96\n  instrument: guitar\napi:\n  base_url: http://localhost:5000\n")

	config = tabloop.__main__.load_config(str(path))

	assert config["sequencer"] == {"initial_bpm": 96, "instrument": "guitar"}
	assert config["api"]["base_url"] == "http://localhost:5000"


def test_load_config_empty_file (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "config.yaml"
	path.write_text("")

	assert tabloop.__main__.load_config(str(path)) == {}


def test_build_persistence_chooses_backend () -> None:

	remote = tabloop.__main__.build_persistence({"api": {"base_url": "http://server:5000/"}})

	assert isinstance(remote, tabloop.persistence.HttpPersistence)
	assert remote.base_url == "http://server:5000"

	assert isinstance(tabloop.__main__.build_persistence({}), tabloop.persistence.InMemoryPersistence)
	assert isinstance(tabloop.__main__.build_persistence({"api": None}), tabloop.persistence.InMemoryPersistence)
