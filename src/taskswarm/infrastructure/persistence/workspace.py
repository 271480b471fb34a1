"""Per-task run directories: `<root>/<alias>/<task_id>/{input,output}.json`."""

import asyncio
import json
import shutil
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
import structlog

logger = structlog.get_logger()


class RunWorkspace:
    def __init__(self, root: str | Path = ".runs"):
        self.root = Path(root)
        self.logger = logger.bind(component="run_workspace")

    async def ensure(self, alias: str, task_id: str) -> Path:
        run_dir = self.root / alias / task_id
        await aiofiles.os.makedirs(run_dir, exist_ok=True)
        return run_dir

    async def _write(self, run_dir: Path, name: str, data: Any) -> None:
        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        try:
            async with aiofiles.open(run_dir / name, "w", encoding="utf-8") as f:
                await f.write(text)
        except OSError as e:
            # run artifacts are diagnostic; a failed write must not fail the task
            self.logger.warning("workspace.write_failed", path=str(run_dir / name), error=str(e))

    async def write_input(self, run_dir: Path, task: Any) -> None:
        await self._write(run_dir, "input.json", task)

    async def write_output(self, run_dir: Path, result: Any) -> None:
        await self._write(run_dir, "output.json", result)

    async def prune(self, alias: str, keep: int = 10, dry_run: bool = False) -> list[Path]:
        """Remove all but the newest `keep` run directories (by mtime) of one alias."""
        alias_dir = self.root / alias
        if not alias_dir.is_dir():
            return []
        runs = sorted(
            (p for p in alias_dir.iterdir() if p.is_dir()),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        removed = runs[keep:]
        for path in removed:
            self.logger.info("workspace.pruned", path=str(path), dry_run=dry_run)
            if not dry_run:
                await asyncio.to_thread(shutil.rmtree, path, ignore_errors=True)
        return removed

    async def prune_all(self, keep: int = 10, dry_run: bool = False) -> list[Path]:
        if not self.root.is_dir():
            return []
        removed: list[Path] = []
        for alias_dir in sorted(p for p in self.root.iterdir() if p.is_dir()):
            removed.extend(await self.prune(alias_dir.name, keep=keep, dry_run=dry_run))
        return removed
