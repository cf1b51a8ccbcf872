"""
External Installer.

This module defines the installer interface the manager delegates artifact
handling to, and a git-backed implementation.

Key features:
- Installer interface: install, update, list installed, remove
- Clone units from git repositories (shallow when pinned)
- Fetch and fast-forward on update
- Optional concurrent cloning
- Batch failures collected into one error
"""

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from lazypack.errors import LazyPackError
from lazypack.unit.registry import UnitSpec

logger = logging.getLogger(__name__)


class InstallerError(LazyPackError):
    """Raised by an installer; surfaced to callers unchanged."""

    pass


@dataclass
class InstallOptions:
    """
    Options passed to installer operations.

    Attributes:
        timeout: Per-command timeout in seconds
        parallel: Whether independent units may be processed concurrently
    """

    timeout: int = 60
    parallel: bool = True


@dataclass
class InstalledUnit:
    """An installed artifact as reported by the installer."""

    id: str
    source_locator: str


class Installer(ABC):
    """Interface to the component that fetches and removes unit artifacts."""

    @abstractmethod
    def install(self, specs: Sequence[UnitSpec], opts: InstallOptions) -> None:
        """Install the given units (already installed ones are left alone)."""

    @abstractmethod
    def update(self, ids: Sequence[str] | None, opts: InstallOptions) -> None:
        """Update the given units, or every installed unit when ids is None."""

    @abstractmethod
    def list_installed(self) -> list[InstalledUnit]:
        """List installed units."""

    @abstractmethod
    def remove(self, ids: Sequence[str]) -> None:
        """Remove installed units."""

    def path_for(self, unit_id: str) -> Path | None:
        """Install directory of a unit, if the installer keeps one."""
        return None


class GitInstaller(Installer):
    """
    Installer keeping one git checkout per unit under ``install_dir``.
    """

    def __init__(self, install_dir: Path):
        """
        Initialize GitInstaller.

        Args:
            install_dir: Directory holding one checkout per unit id
        """
        self.install_dir = install_dir

    def path_for(self, unit_id: str) -> Path | None:
        path = self.install_dir / unit_id
        return path if path.is_dir() else None

    def install(self, specs: Sequence[UnitSpec], opts: InstallOptions) -> None:
        """
        Clone every spec that has no checkout yet.

        Raises:
            InstallerError: If any clone fails (after all were attempted)
        """
        pending = [s for s in specs if not (self.install_dir / s.id).exists()]
        if not pending:
            return

        self.install_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Installing %d unit(s)", len(pending))
        self._run_all([(s.id, lambda s=s: self._clone(s, opts)) for s in pending], opts)

    def update(self, ids: Sequence[str] | None, opts: InstallOptions) -> None:
        """
        Fetch tags and fast-forward each checkout.

        Checkouts on a detached HEAD (pinned to a tag or commit) are only
        fetched.

        Raises:
            InstallerError: If any unit is not installed or fails to update
        """
        if ids is None:
            ids = [unit.id for unit in self.list_installed()]

        missing = [unit_id for unit_id in ids if self.path_for(unit_id) is None]
        if missing:
            raise InstallerError(f"Not installed: {', '.join(missing)}")

        logger.info("Updating %d unit(s)", len(ids))
        self._run_all(
            [(unit_id, lambda u=unit_id: self._pull(u, opts)) for unit_id in ids], opts
        )

    def list_installed(self) -> list[InstalledUnit]:
        if not self.install_dir.is_dir():
            return []

        installed = []
        for path in sorted(self.install_dir.iterdir()):
            if not (path / ".git").exists():
                continue
            url = self._git(
                ["config", "--get", "remote.origin.url"], cwd=path, check=False
            ).strip()
            installed.append(InstalledUnit(id=path.name, source_locator=url))
        return installed

    def remove(self, ids: Sequence[str]) -> None:
        for unit_id in ids:
            path = self.install_dir / unit_id
            if not path.exists():
                continue
            try:
                shutil.rmtree(path)
            except OSError as e:
                raise InstallerError(f"Failed to remove {unit_id}: {e}") from e
            logger.info("Removed %s", unit_id)

    def _run_all(self, jobs, opts: InstallOptions) -> None:
        failures: list[str] = []

        def run(unit_id, job) -> None:
            try:
                job()
            except InstallerError as e:
                failures.append(f"{unit_id}: {e}")

        if opts.parallel and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=min(8, len(jobs))) as pool:
                list(pool.map(lambda j: run(*j), jobs))
        else:
            for unit_id, job in jobs:
                run(unit_id, job)

        if failures:
            raise InstallerError("\n".join(sorted(failures)))

    def _clone(self, spec: UnitSpec, opts: InstallOptions) -> None:
        cmd = ["clone"]
        if spec.version_ref:
            cmd.extend(["--branch", spec.version_ref, "--depth", "1"])
        cmd.extend([spec.source_locator, str(self.install_dir / spec.id)])
        self._git(cmd, timeout=opts.timeout)
        logger.info("Installed %s", spec.id)

    def _pull(self, unit_id: str, opts: InstallOptions) -> None:
        path = self.install_dir / unit_id
        self._git(["fetch", "--tags"], cwd=path, timeout=opts.timeout)
        head = self._git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=path).strip()
        if head != "HEAD":
            self._git(["pull", "--ff-only"], cwd=path, timeout=opts.timeout)
        logger.info("Updated %s", unit_id)

    def _git(
        self,
        args: list[str],
        cwd: Path | None = None,
        timeout: int | None = None,
        check: bool = True,
    ) -> str:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise InstallerError("git command not found. Please install git.") from e
        except subprocess.TimeoutExpired as e:
            raise InstallerError(
                f"git {args[0]} timed out after {timeout} seconds"
            ) from e

        if check and result.returncode != 0:
            raise InstallerError(
                f"git {args[0]} failed: {(result.stderr or result.stdout).strip()}"
            )
        return result.stdout
