"""Cache storage that publishes each artifact as a version of a registry package."""

import json
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from ..config import NpmCacheStorageOptions
from ..object_store.exceptions import StorageError
from .base import CacheStorage
from .local import DEFAULT_INTERNAL_CACHE_FOLDER, copy_files

log = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("E404", "ETARGET", "404 Not Found", "No matching version found")


class NpmCacheStorage(CacheStorage):
    """Stores artifacts as ``<package>@0.0.0-<key>`` in an npm registry.

    ``fetch`` installs the version into ``<internal_cache_folder>/npm/<key>``
    and copies the package contents into cwd. ``put`` stages the files with
    a generated ``package.json`` and publishes them. A root level
    ``package.json`` therefore cannot be part of a cached file set.
    """

    def __init__(
        self,
        options: NpmCacheStorageOptions,
        cwd: str | Path,
        internal_cache_folder: str = DEFAULT_INTERNAL_CACHE_FOLDER,
        incremental_caching: bool = False,
        npm_executable: str = "npm",
    ):
        super().__init__(cwd, incremental_caching)
        self._options = options
        self._install_root = self.cwd / internal_cache_folder / "npm"
        self._npm = npm_executable

    def package_spec(self, key: str) -> str:
        return f"{self._options.npm_package_name}@{self._version(key)}"

    def _fetch(self, key: str) -> bool:
        install_folder = self._install_root / key
        package_folder = install_folder / "node_modules" / self._options.npm_package_name

        if not package_folder.is_dir():
            install_folder.mkdir(parents=True, exist_ok=True)
            result = self._run_npm(
                [
                    "install",
                    "--prefix",
                    str(install_folder),
                    self.package_spec(key),
                    "--registry",
                    self._options.registry_url,
                    "--prefer-offline",
                    "--ignore-scripts",
                    "--no-shrinkwrap",
                    "--no-package-lock",
                    "--loglevel",
                    "error",
                ],
                cwd=install_folder,
                key=key,
            )
            if result.returncode != 0:
                shutil.rmtree(install_folder, ignore_errors=True)
                output = f"{result.stdout}\n{result.stderr}"
                if any(marker in output for marker in _NOT_FOUND_MARKERS):
                    return False
                raise StorageError(
                    f"npm install of {self.package_spec(key)} failed: {result.stderr.strip()}",
                    key=key,
                )

        shutil.copytree(
            package_folder,
            self.cwd,
            dirs_exist_ok=True,
            ignore=_ignore_root_manifest(package_folder),
        )
        return True

    def _put(self, key: str, files: list[str]) -> None:
        with tempfile.TemporaryDirectory(prefix="build-cache-npm-") as tmp:
            staging = Path(tmp)
            copy_files(self.cwd, files, staging)
            manifest = {
                "name": self._options.npm_package_name,
                "version": self._version(key),
            }
            (staging / "package.json").write_text(json.dumps(manifest, indent=2))

            result = self._run_npm(
                ["publish", "--registry", self._options.registry_url, "--loglevel", "error"],
                cwd=staging,
                key=key,
            )
            if result.returncode != 0:
                raise StorageError(
                    f"npm publish of {self.package_spec(key)} failed: {result.stderr.strip()}",
                    key=key,
                )

    @staticmethod
    def _version(key: str) -> str:
        return f"0.0.0-{key}"

    def _run_npm(self, args: list[str], cwd: Path, key: str) -> subprocess.CompletedProcess:
        command = [self._npm, *args]
        if self._options.npmrc_userconfig:
            command += ["--userconfig", self._options.npmrc_userconfig]
        log.debug("Running %s", " ".join(command))
        try:
            return subprocess.run(command, cwd=cwd, capture_output=True, text=True, check=False)
        except FileNotFoundError as e:
            raise StorageError(f"npm executable not found: {self._npm}", key=key, cause=e) from e


def _ignore_root_manifest(package_folder: Path):
    def ignore(directory: str, names: list[str]) -> list[str]:
        if Path(directory) == package_folder and "package.json" in names:
            return ["package.json"]
        return []

    return ignore
