"""Pre-navigation observer that tags ad containers as the DOM changes."""

from __future__ import annotations

from playwright.async_api import Page

DYNAMIC_AD_ATTR = "data-ad-crawler-dynamic"

# Runs in every frame before any page script. Elements that look like ad slots
# when they are inserted (or when their src/id/class changes) are tagged so the
# ad scraper can find ads that were injected and later re-parented.
_DOM_MONITOR_JS = """
(() => {
  const ATTR = '%(attr)s';
  const AD_HINT = /(^|[^a-z])(ad|ads|advert|advertisement|sponsor|sponsored|dfp|gpt|doubleclick|adsbygoogle|taboola|outbrain)([^a-z]|$)/i;
  const AD_SRC = /(doubleclick\\.net|googlesyndication\\.com|adservice\\.google|amazon-adsystem\\.com|taboola\\.com|outbrain\\.com|adnxs\\.com)/i;
  const looksLikeAd = (el) => {
    if (!(el instanceof HTMLElement)) return false;
    const src = el.getAttribute('src') || '';
    if (el.tagName === 'IFRAME' && AD_SRC.test(src)) return true;
    const id = el.id || '';
    const cls = typeof el.className === 'string' ? el.className : '';
    return AD_HINT.test(id) || AD_HINT.test(cls);
  };
  const tag = (el) => {
    if (looksLikeAd(el) && !el.hasAttribute(ATTR)) el.setAttribute(ATTR, '1');
  };
  const scan = (root) => {
    tag(root);
    if (root.querySelectorAll) root.querySelectorAll('iframe, div, ins, aside').forEach(tag);
  };
  const start = () => {
    scan(document.documentElement);
    new MutationObserver((mutations) => {
      for (const m of mutations) {
        if (m.type === 'attributes') tag(m.target);
        m.addedNodes && m.addedNodes.forEach(n => n.nodeType === 1 && scan(n));
      }
    }).observe(document.documentElement, { childList: true, subtree: true, attributes: true, attributeFilter: ['src', 'id', 'class'] });
  };
  if (document.documentElement) start();
  else document.addEventListener('DOMContentLoaded', start, { once: true });
})();
""" % {"attr": DYNAMIC_AD_ATTR}


async def inject_dom_listener(page: Page) -> None:
    await page.add_init_script(script=_DOM_MONITOR_JS)


__all__ = ["DYNAMIC_AD_ATTR", "inject_dom_listener"]
