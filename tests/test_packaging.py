"""Tests for the package metadata."""

import tomllib
from pathlib import Path

PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def load_project() -> dict:
	"""Read the [project] table."""
	with PYPROJECT.open("rb") as f:
		return tomllib.load(f)["project"]


class TestProjectMetadata:
	"""Tests for pyproject.toml."""

	def test_no_readme_declared(self) -> None:
		"""The package has no long description file."""
		assert "readme" not in load_project()

	def test_runtime_dependencies(self) -> None:
		"""Every library the bot imports is declared."""
		names = {i.split(">")[0].split("=")[0] for i in load_project()["dependencies"]}
		assert names == {"py-cord", "aiohttp", "aiofiles", "python-dotenv"}
