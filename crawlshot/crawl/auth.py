"""Authentication bootstrap for a crawl.

Runs once before the first page is captured. Cookie auth injects cookies for
the start URL's domain. Credential auth fills in the login form found at the
configured login URL by trying ordered selector banks, submits it, and looks
for a logout/profile-style element to confirm success.

Failures never stop the crawl: they are logged and the crawl continues
unauthenticated.

Security:
    Credentials are never logged. Only the login URL and the outcome appear
    in logs.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from crawlshot.core.errors import AuthenticationError
from crawlshot.crawl.browser import BrowserSession
from crawlshot.crawl.models import AuthSession, CookieAuth, CredentialsAuth

logger = logging.getLogger(__name__)

# Username / email field selectors (tried in order)
USERNAME_SELECTORS: list[str] = [
    "#username",
    "#user_login",
    "#email",
    "#login",
    'input[name="username"]',
    'input[name="user"]',
    'input[name="email"]',
    'input[name="login"]',
    'input[type="email"]',
    'input[autocomplete="username"]',
    'input[autocomplete="email"]',
    'input[id*="user" i]',
    'input[name*="user" i]',
    'input[id*="email" i]',
    'input[name*="email" i]',
]

PASSWORD_SELECTORS: list[str] = [
    "#password",
    "#user_pass",
    'input[name="password"]',
    'input[name="pwd"]',
    'input[type="password"]',
]

SUBMIT_SELECTORS: list[str] = [
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Sign in")',
    'button:has-text("Log in")',
    'button:has-text("Login")',
    'button:has-text("Submit")',
    'button:has-text("Continue")',
    '[role="button"]:has-text("Sign in")',
    '[role="button"]:has-text("Log in")',
]

# Elements that only appear for a signed-in user
SUCCESS_SELECTORS: list[str] = [
    'a[href*="logout" i]',
    'a[href*="log-out" i]',
    'a[href*="signout" i]',
    'a[href*="sign-out" i]',
    'button:has-text("Log out")',
    'button:has-text("Logout")',
    'button:has-text("Sign out")',
    'a:has-text("Log out")',
    'a:has-text("Sign out")',
    'a[href*="profile" i]',
    'a[href*="account" i]',
    '[class*="avatar" i]',
]


class Authenticator:
    """Apply an AuthSession to the browsing context, at most once.

    Args:
        auth: Authentication to apply (None disables the bootstrap)
        navigation_timeout_ms: Timeout for loading the login page
        network_idle_timeout_ms: Timeout for the post-submit network settle
    """

    def __init__(
        self,
        auth: AuthSession | None,
        navigation_timeout_ms: float = 30_000,
        network_idle_timeout_ms: float = 10_000,
    ) -> None:
        self.auth = auth
        self._navigation_timeout_ms = navigation_timeout_ms
        self._network_idle_timeout_ms = network_idle_timeout_ms

    async def bootstrap(self, browser: BrowserSession, start_url: str) -> bool:
        """Authenticate the browsing context.

        Args:
            browser: Browser session owning the context and page
            start_url: Canonical start URL (scopes injected cookies)

        Returns:
            True if the context is authenticated, False otherwise
        """
        if self.auth is None:
            return False

        try:
            if isinstance(self.auth, CookieAuth):
                await self._inject_cookies(browser, self.auth, start_url)
            elif isinstance(self.auth, CredentialsAuth):
                await self._login(browser.page, self.auth)
            return True
        except AuthenticationError as exc:
            logger.warning("Authentication failed, continuing unauthenticated: %s", exc)
        except PlaywrightError as exc:
            logger.warning(
                "Authentication failed, continuing unauthenticated: %s",
                exc.message,
            )
        return False

    async def _inject_cookies(
        self, browser: BrowserSession, auth: CookieAuth, start_url: str
    ) -> None:
        domain = urlsplit(start_url).hostname
        if not domain:
            raise AuthenticationError(f"Cannot scope cookies to {start_url}")
        await browser.add_cookies(
            [
                {"name": cookie.name, "value": cookie.value, "domain": domain, "path": "/"}
                for cookie in auth.cookies
            ]
        )
        logger.info("Injected %d cookie(s) for %s", len(auth.cookies), domain)

    async def _login(self, page: Page, auth: CredentialsAuth) -> None:
        logger.info("Logging in at %s", auth.login_url)
        response = await page.goto(
            auth.login_url,
            timeout=self._navigation_timeout_ms,
            wait_until="load",
        )
        if response is not None and response.status >= 400:
            raise AuthenticationError(f"Login page returned HTTP {response.status}")

        username_selector = await self._find_first(page, USERNAME_SELECTORS)
        if username_selector is None:
            raise AuthenticationError("Could not find a username field")
        password_selector = await self._find_first(page, PASSWORD_SELECTORS)
        if password_selector is None:
            raise AuthenticationError("Could not find a password field")

        await page.fill(username_selector, auth.username)
        await page.fill(password_selector, auth.password)

        submit_selector = await self._find_first(page, SUBMIT_SELECTORS)
        if submit_selector is None:
            raise AuthenticationError("Could not find a submit control")
        await page.click(submit_selector)

        await self._wait_for_network_idle(page)

        indicator = await self._find_first(page, SUCCESS_SELECTORS)
        if indicator is None:
            raise AuthenticationError("No signed-in indicator found after login")
        logger.info("Login succeeded (matched %s)", indicator)

    async def _find_first(self, page: Page, selectors: list[str]) -> str | None:
        """Return the first selector matching a visible element."""
        for selector in selectors:
            try:
                element = await page.query_selector(selector)
                if element is not None and await element.is_visible():
                    return selector
            except PlaywrightError:
                logger.debug("Selector %s failed to evaluate", selector)
        return None

    async def _wait_for_network_idle(self, page: Page) -> None:
        try:
            await page.wait_for_load_state(
                "networkidle", timeout=self._network_idle_timeout_ms
            )
        except PlaywrightError:
            logger.info("Network idle timeout after login, continuing anyway")
