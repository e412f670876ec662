"""
Playwright-backed stand-in agent.

Launches headless Chromium with flags that keep it deterministic and cheap
in a locked-down host (no sandbox, no GPU, no audio, no background
throttling), marks the page as the stand-in before any service code runs,
and tags every outbound request with the self-origin header.
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Any, List, Optional

from .exceptions import LaunchFailure, TeardownFailure
from .logging_config import get_logger
from .settings import DEFAULT_LAUNCH_TIMEOUT, DEFAULT_TEARDOWN_TIMEOUT
from .states import AGENT_ENV_VAR, AGENT_HEADER
from .web_templates import get_agent_identity_script

log = get_logger("browser_agent")


CHROMIUM_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--mute-audio",
    "--disable-renderer-backgrounding",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
]

# Playwright's closest equivalent of "network idle for 500ms"
WAIT_UNTIL = "networkidle"


@dataclass
class _LaunchResources:
    """Whatever has been created so far during a launch."""

    playwright: Any = None
    browser: Any = None


class BrowserAgentHandle:
    """Handle to a running Chromium stand-in."""

    def __init__(self, playwright, browser, page, teardown_timeout: float = DEFAULT_TEARDOWN_TIMEOUT):
        self._playwright = playwright
        self._browser = browser
        self.page = page
        self.teardown_timeout = teardown_timeout

    async def close(self) -> None:
        """Close the browser and stop the Playwright driver.

        Raises:
            TeardownFailure: If the browser close errors or times out
        """
        try:
            await asyncio.wait_for(self._browser.close(), timeout=self.teardown_timeout)
        except asyncio.TimeoutError as e:
            raise TeardownFailure(
                f"Browser did not close within {self.teardown_timeout}s"
            ) from e
        except Exception as e:
            raise TeardownFailure(f"Browser close failed: {e}") from e
        finally:
            await _stop_driver(self._playwright)


async def _stop_driver(playwright) -> None:
    if playwright is None:
        return
    try:
        await playwright.stop()
    except Exception as e:
        log.debug(f"Playwright driver stop failed: {e}")


class BrowserAgentLauncher:
    """Launches Chromium stand-ins via Playwright's async API."""

    def __init__(
        self,
        headless: bool = True,
        launch_timeout: float = DEFAULT_LAUNCH_TIMEOUT,
        teardown_timeout: float = DEFAULT_TEARDOWN_TIMEOUT,
        args: Optional[List[str]] = None,
    ):
        self.headless = headless
        self.launch_timeout = launch_timeout
        self.teardown_timeout = teardown_timeout
        self.args = list(args) if args is not None else list(CHROMIUM_ARGS)

    async def launch(self, url: str) -> BrowserAgentHandle:
        """Start Chromium, inject the self-identity markers and open url.

        Anything created before a failure is closed before LaunchFailure
        propagates, so a failed launch never leaves a browser behind.
        """
        resources = _LaunchResources()
        try:
            return await asyncio.wait_for(
                self._launch(url, resources), timeout=self.launch_timeout
            )
        except asyncio.TimeoutError as e:
            await self._release(resources)
            raise LaunchFailure(
                f"Agent did not reach {url} within {self.launch_timeout}s", url=url
            ) from e
        except asyncio.CancelledError:
            await self._release(resources)
            raise
        except Exception as e:
            await self._release(resources)
            raise LaunchFailure(f"Agent launch failed: {e}", url=url) from e

    async def _launch(self, url: str, resources: _LaunchResources) -> BrowserAgentHandle:
        from playwright.async_api import async_playwright

        resources.playwright = await async_playwright().start()
        resources.browser = await resources.playwright.chromium.launch(
            headless=self.headless,
            args=self.args,
            env={**os.environ, AGENT_ENV_VAR: "1"},
        )
        context = await resources.browser.new_context(
            extra_http_headers={AGENT_HEADER: "1"}
        )
        await context.add_init_script(get_agent_identity_script())
        page = await context.new_page()
        await page.goto(url, wait_until=WAIT_UNTIL, timeout=self.launch_timeout * 1000)
        return BrowserAgentHandle(
            resources.playwright, resources.browser, page, self.teardown_timeout
        )

    async def _release(self, resources: _LaunchResources) -> None:
        if resources.browser is not None:
            try:
                await asyncio.wait_for(resources.browser.close(), timeout=self.teardown_timeout)
            except Exception as e:
                log.warning(f"Failed to close partially launched browser: {e}")
        await _stop_driver(resources.playwright)
