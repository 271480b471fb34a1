"""Bring-your-own-model runner: pipes a prompt into a shell command."""

import asyncio
from typing import Any, Dict

import structlog


class CLIRunner:
    """Run a configured command with the prompt on stdin and capture stdout."""

    def __init__(self, command: str, timeout: int = 60):
        self.command = command
        self.timeout = timeout
        self.logger = structlog.get_logger().bind(component="cli_runner")

    async def run(self, input_text: str) -> Dict[str, Any]:
        """
        Returns:
            Dict with success, content (stdout), stderr, returncode and, on
            failure, error.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                "/bin/sh",
                "-lc",
                self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return {"success": False, "content": "", "error": str(e)}

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input_text.encode("utf-8")),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self.logger.warning("cli_runner_timeout", timeout=self.timeout)
            return {"success": False, "content": "", "error": f"Command timed out after {self.timeout}s"}

        success = process.returncode == 0
        stdout_text = stdout.decode("utf-8", errors="replace") if stdout else ""
        stderr_text = stderr.decode("utf-8", errors="replace") if stderr else ""
        resp = {
            "success": success,
            "content": stdout_text,
            "stderr": stderr_text,
            "returncode": process.returncode,
        }
        if not success:
            resp["error"] = stderr_text or f"Command failed with code {process.returncode}"
            self.logger.warning("cli_runner_failed", returncode=process.returncode, error=resp["error"][:200])
        return resp
