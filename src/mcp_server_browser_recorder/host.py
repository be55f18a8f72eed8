"""Browser host: turns page state into text and performs recording trigger actions.

The recording engine only needs the ``AutomationTarget`` protocol. The
browser-use implementation below talks to the page through session-scoped CDP
commands (``session_id``), the same way the browser-use watchdogs are bypassed
elsewhere, and requires the Page and Runtime domains to be enabled first.

Page state is rendered as an indented outline, one element per line:

    - main
      - heading "Checkout" [ref=e3]
      - button "Pay now" [ref=e7]

Refs are stored on the elements as ``data-mcp-ref`` so the same element keeps
its ref across captures, which is what the element-level diff relies on.
"""

import asyncio
import json
import logging
from collections import deque
from typing import TYPE_CHECKING, Any, Protocol

from .cache.console import ConsoleMessage, console_message_from_cdp, console_message_from_exception
from .config import BrowserSettings
from .exceptions import BrowserError, CaptureSkipped, InvalidArgumentError
from .recording.models import ActionKind, ActionSpec

if TYPE_CHECKING:
    from browser_use.browser.session import BrowserSession, CDPSession

logger = logging.getLogger(__name__)


class AutomationTarget(Protocol):
    """What a recording needs from the thing being automated."""

    async def capture_state(self) -> str: ...

    async def perform_action(self, action: ActionSpec) -> None: ...

    async def console_messages(self) -> list[ConsoleMessage]: ...

    async def page_info(self) -> dict[str, str]: ...


class AutomationHost(Protocol):
    """Owns the target's lifetime."""

    async def get_target(self) -> AutomationTarget: ...

    async def close(self) -> None: ...


OUTLINE_JS = r"""
(() => {
  const TAG_ROLES = {
    A: 'link', BUTTON: 'button', TEXTAREA: 'textbox', SELECT: 'combobox', IMG: 'img',
    H1: 'heading', H2: 'heading', H3: 'heading', H4: 'heading', H5: 'heading', H6: 'heading',
    MAIN: 'main', NAV: 'nav', HEADER: 'header', FOOTER: 'footer', ASIDE: 'aside',
    ARTICLE: 'article', SECTION: 'section', FORM: 'form', DIALOG: 'dialog', IFRAME: 'iframe',
    UL: 'list', OL: 'list', LI: 'listitem', TABLE: 'table', TR: 'row', TD: 'cell', TH: 'columnheader',
    LABEL: 'label', PROGRESS: 'progressbar'
  };
  const INPUT_ROLES = { checkbox: 'checkbox', radio: 'radio', submit: 'button', button: 'button', reset: 'button' };
  const CONTAINERS = new Set(['main', 'nav', 'header', 'footer', 'aside', 'article', 'section', 'form',
    'dialog', 'alertdialog', 'iframe', 'list', 'table', 'row', 'region']);
  const SKIP = new Set(['SCRIPT', 'STYLE', 'NOSCRIPT', 'TEMPLATE', 'SVG', 'HEAD']);
  window.__mcpRefSeq = window.__mcpRefSeq || 0;
  const lines = [];
  const clean = s => (s || '').replace(/\s+/g, ' ').trim().slice(0, 80).replace(/"/g, '\\"');
  const roleOf = el => {
    if (el.getAttribute('role')) return el.getAttribute('role');
    if (el.getAttribute('aria-busy') === 'true') return 'progressbar';
    if (el.tagName === 'INPUT') return INPUT_ROLES[(el.type || '').toLowerCase()] || 'textbox';
    return TAG_ROLES[el.tagName] || null;
  };
  const refOf = el => {
    let ref = el.getAttribute('data-mcp-ref');
    if (!ref) {
      window.__mcpRefSeq += 1;
      ref = 'e' + window.__mcpRefSeq;
      el.setAttribute('data-mcp-ref', ref);
    }
    return ref;
  };
  const ownText = el => Array.from(el.childNodes)
    .filter(n => n.nodeType === Node.TEXT_NODE).map(n => n.textContent).join(' ');
  const walk = (el, depth) => {
    if (SKIP.has(el.tagName)) return;
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden') return;
    const role = roleOf(el);
    let childDepth = depth;
    const indent = '  '.repeat(depth);
    if (role) {
      const label = el.getAttribute('aria-label') || el.getAttribute('alt')
        || el.getAttribute('placeholder') || el.getAttribute('title');
      const name = clean(CONTAINERS.has(role) ? label : (label || el.innerText));
      let line = indent + '- ' + role + (name ? ' "' + name + '"' : '');
      if (el.disabled) line += ' [disabled]';
      if (el.checked) line += ' [checked]';
      line += ' [ref=' + refOf(el) + ']';
      if (role === 'textbox' && typeof el.value === 'string' && el.value) line += ': ' + clean(el.value);
      lines.push(line);
      childDepth = depth + 1;
      if (!CONTAINERS.has(role) && role !== 'listitem' && role !== 'cell') return;
    } else {
      const text = clean(ownText(el));
      if (text) lines.push(indent + '- text: ' + text);
    }
    for (const child of el.children) walk(child, childDepth);
  };
  if (document.body) walk(document.body, 0);
  return lines.join('\n');
})()
"""

_CLICK_JS = """
((ref) => {
  const el = document.querySelector(`[data-mcp-ref="${ref}"]`);
  if (!el) return false;
  el.scrollIntoView({block: 'center'});
  el.click();
  return true;
})(%s)
"""

_FILL_JS = """
((ref, value) => {
  const el = document.querySelector(`[data-mcp-ref="${ref}"]`);
  if (!el) return false;
  el.focus();
  if (el.isContentEditable) {
    el.textContent = value;
  } else {
    const proto = el.tagName === 'TEXTAREA' ? HTMLTextAreaElement.prototype : HTMLInputElement.prototype;
    const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
    setter.call(el, value);
  }
  el.dispatchEvent(new Event('input', {bubbles: true}));
  el.dispatchEvent(new Event('change', {bubbles: true}));
  return true;
})(%s, %s)
"""

# Virtual key codes for the non-printable keys press_key accepts
_KEY_CODES: dict[str, int] = {
    "Enter": 13,
    "Tab": 9,
    "Escape": 27,
    "Backspace": 8,
    "Delete": 46,
    "Space": 32,
    "ArrowLeft": 37,
    "ArrowUp": 38,
    "ArrowRight": 39,
    "ArrowDown": 40,
    "Home": 36,
    "End": 35,
    "PageUp": 33,
    "PageDown": 34,
}

_KEY_TEXT: dict[str, str] = {"Enter": "\r", "Space": " ", "Tab": "\t"}


class BrowserUseTarget:
    """AutomationTarget backed by a started browser-use ``BrowserSession``."""

    def __init__(self, browser_session: "BrowserSession", action_timeout_ms: int = 5_000, console_buffer: int = 1_000):
        self.browser_session = browser_session
        self.action_timeout_ms = action_timeout_ms
        self._console: deque[ConsoleMessage] = deque(maxlen=console_buffer)
        self._cdp_session: "CDPSession | None" = None
        self._console_attached = False

    async def capture_state(self) -> str:
        try:
            value = await self._evaluate(OUTLINE_JS)
        except Exception as e:
            raise CaptureSkipped(f"State capture failed: {e}") from e
        return value if isinstance(value, str) else ""

    async def perform_action(self, action: ActionSpec) -> None:
        action.validate_required()
        if action.kind == ActionKind.WAIT:
            return
        if action.kind == ActionKind.CLICK:
            await self._on_ref(_CLICK_JS % json.dumps(action.ref), action)
        elif action.kind == ActionKind.TYPE:
            await self._on_ref(_FILL_JS % (json.dumps(action.ref), json.dumps(action.text)), action)
        elif action.kind == ActionKind.NAVIGATE:
            await self._navigate(action.url or "")
        elif action.kind == ActionKind.PRESS_KEY:
            await self._press_key(action.key or "")
        else:
            raise InvalidArgumentError(f"Unsupported action: {action.kind}")

    async def console_messages(self) -> list[ConsoleMessage]:
        await self.attach_console()
        return list(self._console)

    async def page_info(self) -> dict[str, str]:
        try:
            value = await self._evaluate("JSON.stringify({url: location.href, title: document.title})")
            info = json.loads(value) if isinstance(value, str) else {}
        except Exception as e:
            logger.debug(f"Could not read page info: {e}")
            info = {}
        return {"url": info.get("url") or "unknown", "title": info.get("title") or "unknown"}

    async def attach_console(self) -> None:
        """Start collecting console messages and uncaught exceptions."""
        if self._console_attached:
            return
        await self._get_cdp_session()
        cdp_client = self.browser_session.cdp_client
        cdp_client.register.Runtime.consoleAPICalled(self._on_console_api_called)
        cdp_client.register.Runtime.exceptionThrown(self._on_exception_thrown)
        self._console_attached = True
        logger.debug("Console collector attached via CDP")

    def _on_console_api_called(self, event: dict[str, Any], session_id: str | None = None) -> None:
        self._console.append(console_message_from_cdp(event))

    def _on_exception_thrown(self, event: dict[str, Any], session_id: str | None = None) -> None:
        self._console.append(console_message_from_exception(event))

    async def _get_cdp_session(self) -> "CDPSession":
        if self._cdp_session is not None:
            return self._cdp_session

        cdp_session = await self.browser_session.get_or_create_cdp_session()
        for domain in ("Page", "Runtime"):
            try:
                await getattr(self.browser_session.cdp_client.send, domain).enable(session_id=cdp_session.session_id)
            except Exception as e:
                # May already be enabled by session manager
                logger.debug(f"{domain}.enable: {e}")
        self._cdp_session = cdp_session
        return cdp_session

    async def _evaluate(self, expression: str) -> Any:
        cdp_session = await self._get_cdp_session()
        result = await self.browser_session.cdp_client.send.Runtime.evaluate(
            params={
                "expression": expression,
                "returnByValue": True,
                "awaitPromise": True,
                "timeout": self.action_timeout_ms,
            },
            session_id=cdp_session.session_id,
        )
        if result.get("exceptionDetails"):
            raise BrowserError(result["exceptionDetails"].get("text", "Evaluation failed"))
        return result.get("result", {}).get("value")

    async def _on_ref(self, expression: str, action: ActionSpec) -> None:
        found = await self._evaluate(expression)
        if not found:
            label = f" ({action.element})" if action.element else ""
            raise BrowserError(f"Element ref={action.ref}{label} not found in current page")

    async def _navigate(self, url: str) -> None:
        cdp_session = await self._get_cdp_session()
        nav_result = await self.browser_session.cdp_client.send.Page.navigate(
            params={"url": url, "transitionType": "typed"},
            session_id=cdp_session.session_id,
        )
        if nav_result.get("errorText"):
            raise BrowserError(f"Navigation failed: {nav_result['errorText']}")

        # Wait for DOMContentLoaded, bounded by the action timeout
        deadline = asyncio.get_running_loop().time() + self.action_timeout_ms / 1000
        while asyncio.get_running_loop().time() < deadline:
            try:
                state = await self._evaluate("document.readyState")
            except BrowserError:
                state = None
            if state in ("interactive", "complete"):
                return
            await asyncio.sleep(0.05)
        logger.warning(f"Timed out waiting for {url} to load")

    async def _press_key(self, key: str) -> None:
        cdp_session = await self._get_cdp_session()
        text = _KEY_TEXT.get(key, key if len(key) == 1 else "")
        params: dict[str, Any] = {"key": " " if key == "Space" else key}
        if key in _KEY_CODES:
            params["windowsVirtualKeyCode"] = _KEY_CODES[key]
        elif len(key) == 1:
            params["windowsVirtualKeyCode"] = ord(key.upper())

        down = {**params, "type": "keyDown"}
        if text:
            down["text"] = text
        await self.browser_session.cdp_client.send.Input.dispatchKeyEvent(
            params=down, session_id=cdp_session.session_id
        )
        await self.browser_session.cdp_client.send.Input.dispatchKeyEvent(
            params={**params, "type": "keyUp"}, session_id=cdp_session.session_id
        )


class BrowserUseHost:
    """Lazily starts one shared browser-use session on first use."""

    def __init__(self, browser_settings: BrowserSettings):
        self.browser_settings = browser_settings
        self._browser_session: "BrowserSession | None" = None
        self._target: BrowserUseTarget | None = None
        self._lock = asyncio.Lock()

    async def get_target(self) -> BrowserUseTarget:
        if self._target is not None:
            return self._target

        async with self._lock:
            if self._target is not None:
                return self._target

            from browser_use import BrowserProfile
            from browser_use.browser.profile import ProxySettings
            from browser_use.browser.session import BrowserSession

            proxy = None
            if self.browser_settings.proxy_server:
                proxy = ProxySettings(
                    server=self.browser_settings.proxy_server,
                    bypass=self.browser_settings.proxy_bypass,
                )
            profile = BrowserProfile(
                headless=self.browser_settings.headless,
                proxy=proxy,
                cdp_url=self.browser_settings.cdp_url,
            )
            if self.browser_settings.cdp_url:
                logger.info(f"Using external browser via CDP: {self.browser_settings.cdp_url}")

            browser_session = BrowserSession(browser_profile=profile)
            try:
                await browser_session.start()
            except Exception as e:
                raise BrowserError(f"Failed to start browser: {e}") from e

            target = BrowserUseTarget(
                browser_session,
                action_timeout_ms=self.browser_settings.action_timeout_ms,
                console_buffer=self.browser_settings.console_buffer,
            )
            try:
                await target.attach_console()
            except Exception as e:
                logger.warning(f"Console capture unavailable: {e}")

            self._browser_session = browser_session
            self._target = target
            return target

    async def close(self) -> None:
        browser_session, self._browser_session, self._target = self._browser_session, None, None
        if browser_session is None:
            return
        try:
            await browser_session.stop()
        except Exception as e:
            logger.warning(f"Error while stopping browser: {e}")
