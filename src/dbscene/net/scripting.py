"""AppleScript side channel for QLab.

QLab has no OSC method for collapsing a group cue, so the bridge asks the
application directly through ``osascript``. This only works when the bridge
runs on the QLab machine; callers treat every failure as non-fatal.
"""

import asyncio
import logging

from ..common.exceptions import CommunicationError

logger = logging.getLogger(__name__)

QLAB_BUNDLE_ID = "com.figure53.QLab.4"


class ScriptingBridge:
    """Runs AppleScript snippets against the front QLab workspace"""

    def __init__(
        self,
        bundle_id: str = QLAB_BUNDLE_ID,
        executable: str = "osascript",
        timeout: float = 5.0,
    ):
        self.bundle_id = bundle_id
        self.executable = executable
        self.timeout = timeout

    def collapse_script(self, cue_id: str) -> str:
        return (
            f'tell application id "{self.bundle_id}" to tell front workspace\n'
            f' collapse cue id "{cue_id}"\n'
            f" end tell"
        )

    async def run(self, script: str) -> str:
        """Execute a script and return its standard output"""
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                "-e",
                script,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CommunicationError(f"Cannot start {self.executable}: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise CommunicationError(f"{self.executable} did not finish in {self.timeout}s")

        if process.returncode != 0:
            raise CommunicationError(
                f"{self.executable} exited with {process.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )
        return stdout.decode(errors="replace").strip()

    async def collapse(self, cue_id: str) -> None:
        """Collapse a group cue in the QLab cue list"""
        await self.run(self.collapse_script(cue_id))
        logger.debug(f"Collapsed cue {cue_id}")
