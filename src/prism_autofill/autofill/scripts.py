"""JavaScript evaluated inside the host chat pages.

Every script is a function expression taking one JSON argument, evaluated the
way Playwright's ``page.evaluate(expression, arg)`` does it. Text and
selectors always travel in the argument, never spliced into the source.

Scripts that describe elements stamp them with ``data-prism-ref`` so later
scripts can address the exact same node without re-running selectors.
Logical failures come back as JSON values; scripts do not throw.
"""

REF_ATTRIBUTE = "data-prism-ref"

_HELPERS = """
  const REF_ATTR = 'data-prism-ref';
  const INPUT_AREAS = '[contenteditable="true"], textarea, input[type="text"]';
  const stamp = (el) => {
    let ref = el.getAttribute(REF_ATTR);
    if (!ref) {
      window.__prismRefSeq = (window.__prismRefSeq || 0) + 1;
      ref = String(window.__prismRefSeq);
      el.setAttribute(REF_ATTR, ref);
    }
    return ref;
  };
  const byRef = (ref) => ref ? document.querySelector('[' + REF_ATTR + '="' + ref + '"]') : null;
  const queryAll = (selector) => {
    try {
      return Array.from(document.querySelectorAll(selector));
    } catch (e) {
      return null;
    }
  };
  const resolveTarget = (payload) => {
    const direct = byRef(payload.ref);
    if (direct || !payload.fallback_selector) return direct;
    const matches = queryAll(payload.fallback_selector) || [];
    return matches.length ? matches[0] : null;
  };
  const layout = (el) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    return {
      width: rect.width,
      height: rect.height,
      has_box: el.offsetParent !== null || style.position === 'fixed',
      visibility: style.visibility,
      display: style.display,
      pointer_events: style.pointerEvents,
      hidden: !!el.hidden || el.getAttribute('aria-hidden') === 'true',
      disabled: !!el.disabled || el.hasAttribute('disabled') || el.getAttribute('aria-disabled') === 'true',
    };
  };
"""


def _script(signature: str, body: str) -> str:
    return signature + " => {" + _HELPERS + body + "}"


CHECK_READY = """(payload) => {
  let matched = true;
  if (payload.wait_selector) {
    try {
      matched = document.querySelector(payload.wait_selector) !== null;
    } catch (e) {
      matched = false;
    }
  }
  return {
    ready_state: document.readyState,
    complete: document.readyState === 'complete',
    matched: matched,
  };
}"""


SNAPSHOT_INPUTS = _script("(payload)", """
  const candidates = [];
  const invalid = [];
  payload.selectors.forEach((selector, selectorIndex) => {
    const nodes = queryAll(selector);
    if (nodes === null) {
      invalid.push(selector);
      return;
    }
    nodes.slice(0, payload.max_matches).forEach((el, matchIndex) => {
      candidates.push(Object.assign({
        ref: stamp(el),
        selector: selector,
        selector_index: selectorIndex,
        match_index: matchIndex,
        tag: el.tagName.toLowerCase(),
        content_editable: !!el.isContentEditable,
        read_only: !!el.readOnly,
        role: el.getAttribute('role'),
      }, layout(el)));
    });
  });
  return { ready_state: document.readyState, candidates: candidates, invalid_selectors: invalid };
""")


SNAPSHOT_BUTTONS = _script("(payload)", """
  const BUTTONS = 'button, [role="button"]';
  const primary = byRef(payload.input_ref);
  const allButtons = queryAll(BUTTONS) || [];
  const areaRects = (queryAll(INPUT_AREAS) || [])
    .map((area) => area.getBoundingClientRect())
    .filter((rect) => rect.width > 0 && rect.height > 0);
  const gap = (a, b) => {
    const dx = Math.max(b.left - a.right, a.left - b.right, 0);
    const dy = Math.max(b.top - a.bottom, a.top - b.bottom, 0);
    return Math.sqrt(dx * dx + dy * dy);
  };
  const describe = (el) => {
    const rect = el.getBoundingClientRect();
    const svgs = Array.from(el.querySelectorAll('svg'));
    const hints = svgs.map((svg) => [
      svg.getAttribute('data-icon'),
      svg.getAttribute('class'),
      svg.getAttribute('aria-label'),
      svg.getAttribute('data-testid'),
    ].filter(Boolean).join(' ')).join(' ');
    const form = el.closest('form');
    const domOrder = allButtons.indexOf(el);
    return Object.assign({
      ref: stamp(el),
      tag: el.tagName.toLowerCase(),
      text: (el.innerText || el.textContent || '').trim().slice(0, 200),
      aria_label: el.getAttribute('aria-label') || '',
      title: el.getAttribute('title') || '',
      class_name: el.getAttribute('class') || '',
      test_id: el.getAttribute('data-testid') || el.getAttribute('data-test-id') || '',
      element_id: el.id || '',
      jsname: el.getAttribute('jsname') || '',
      type: el.getAttribute('type') || '',
      has_svg: svgs.length > 0,
      has_small_svg: svgs.some((svg) => svg.getAttribute('width') === '16' && svg.getAttribute('height') === '16'),
      has_hidden_svg: svgs.some((svg) => svg.getAttribute('aria-hidden') === 'true'),
      icon_hints: hints.toLowerCase(),
      distance_to_input: areaRects.length ? Math.min(...areaRects.map((r) => gap(rect, r))) : null,
      distance_to_primary: primary ? gap(rect, primary.getBoundingClientRect()) : null,
      in_form_with_editable: !!(form && form.querySelector('[contenteditable="true"]')),
      dom_order: domOrder < 0 ? allButtons.length : domOrder,
      sources: [],
    }, layout(el));
  };
  const entries = new Map();
  const add = (el, source) => {
    const target = el.closest(BUTTONS) || el;
    const ref = stamp(target);
    let entry = entries.get(ref);
    if (!entry) {
      if (entries.size >= payload.max_candidates) return;
      entry = describe(target);
      entries.set(ref, entry);
    }
    entry.sources.push(source);
  };

  payload.submit_selectors.forEach((selector, selectorIndex) => {
    (queryAll(selector) || []).slice(0, payload.max_matches).forEach((el) => {
      add(el, { kind: 'selector', selector: selector, selector_index: selectorIndex });
    });
  });

  const anchors = primary ? [primary] : (queryAll(INPUT_AREAS) || []);
  anchors.forEach((anchor) => {
    let parent = anchor.parentElement;
    for (let depth = 1; depth <= payload.ancestor_levels && parent; depth++) {
      parent.querySelectorAll(BUTTONS).forEach((button) => add(button, { kind: 'nearby', depth: depth }));
      parent = parent.parentElement;
    }
  });

  allButtons.forEach((button) => add(button, { kind: 'global' }));

  return { primary_found: !!primary, candidates: Array.from(entries.values()) };
""")


FILL_INPUT = _script("(payload)", """
  const el = resolveTarget(payload);
  if (!el) return { ok: false, reason: 'not-found', events: [] };
  const text = payload.text;
  const events = [];
  const fire = (event) => {
    el.dispatchEvent(event);
    events.push(event.type);
  };
  // The element decides the path; payload.strategy is echoed back as requested
  const useEditable = el.isContentEditable || typeof el.value !== 'string';

  try {
    el.focus();
    if (useEditable) {
      let method = 'execCommand';
      el.textContent = '';
      const selection = window.getSelection();
      if (selection) {
        const range = document.createRange();
        range.selectNodeContents(el);
        range.collapse(false);
        selection.removeAllRanges();
        selection.addRange(range);
      }
      let inserted = false;
      try {
        inserted = document.execCommand('insertText', false, text);
      } catch (e) {
        inserted = false;
      }
      if (!inserted) {
        el.textContent = text;
        method = 'direct';
      }
      fire(new Event('focus', { bubbles: true }));
      fire(new InputEvent('input', { bubbles: true, inputType: 'insertText', data: text }));
      fire(new Event('change', { bubbles: true }));
      return { ok: true, method: method, strategy: 'content-editable-region', requested: payload.strategy, events: events };
    }

    let setter = null;
    const nativeProto = el instanceof HTMLTextAreaElement ? HTMLTextAreaElement.prototype
      : el instanceof HTMLInputElement ? HTMLInputElement.prototype : null;
    let proto = nativeProto || Object.getPrototypeOf(el);
    while (proto && !setter) {
      const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
      if (descriptor && descriptor.set) setter = descriptor.set;
      proto = Object.getPrototypeOf(proto);
    }
    let method = 'native-setter';
    if (setter) {
      setter.call(el, text);
    } else {
      el.value = text;
      method = 'assignment';
    }
    fire(new Event('input', { bubbles: true }));
    fire(new Event('change', { bubbles: true }));
    fire(new KeyboardEvent('keydown', { bubbles: true }));
    fire(new KeyboardEvent('keyup', { bubbles: true }));
    return { ok: true, method: method, strategy: 'react-controlled-field', requested: payload.strategy, events: events };
  } catch (error) {
    return { ok: false, reason: String(error), events: events };
  }
""")


READ_INPUT = _script("(payload)", """
  const el = resolveTarget(payload);
  if (!el) return { found: false, content: '' };
  const content = (!el.isContentEditable && typeof el.value === 'string')
    ? el.value
    : (el.innerText || el.textContent || '');
  return { found: true, content: content.slice(0, payload.max_length) };
""")


CLICK_ELEMENT = _script("async (payload)", """
  const el = byRef(payload.ref);
  if (!el) return { clicked: false, reason: 'stale-ref', events: [] };
  const sleep = (ms) => new Promise((resolve) => setTimeout(resolve, ms));
  const events = [];
  try {
    el.scrollIntoView({ behavior: 'instant', block: 'center' });
    el.focus();
    await sleep(payload.focus_delay_ms);
    el.click();
    events.push('native-click');
    await sleep(payload.wave_delay_ms);
  } catch (error) {
    return { clicked: false, reason: String(error), events: events };
  }

  const Pointer = typeof PointerEvent === 'function' ? PointerEvent : MouseEvent;
  const mouseInit = { bubbles: true, cancelable: true, view: window };
  const keyInit = { key: 'Enter', code: 'Enter', keyCode: 13, which: 13, bubbles: true, cancelable: true };
  const wave = [
    () => new Pointer('pointerdown', mouseInit),
    () => new Pointer('pointerup', mouseInit),
    () => new MouseEvent('mousedown', mouseInit),
    () => new MouseEvent('mouseup', mouseInit),
    () => new MouseEvent('click', mouseInit),
    () => new KeyboardEvent('keydown', keyInit),
    () => new KeyboardEvent('keyup', keyInit),
  ];
  wave.forEach((make) => {
    try {
      const event = make();
      el.dispatchEvent(event);
      events.push(event.type);
    } catch (e) {
      // host pages may reject individual synthetic events
    }
  });
  return { clicked: true, events: events };
""")


ACTIVATE_PAGE = """(payload) => {
  window.dispatchEvent(new Event('focus'));
  document.dispatchEvent(new Event('focus'));
  let refreshed = 0;
  if (payload.refresh_editables) {
    document.querySelectorAll('[contenteditable="true"][role="textbox"]').forEach((input) => {
      input.focus();
      setTimeout(() => input.blur(), 10);
      setTimeout(() => input.focus(), 20);
      refreshed += 1;
    });
  }
  return { activated: true, visibility: document.visibilityState, refreshed: refreshed };
}"""


KEEP_ALIVE = """(payload) => {
  if (window.__prismKeepAlive) {
    return { applied: false, already_applied: true };
  }
  const state = window.__prismKeepAlive = { installed_at: Date.now(), suppressed: 0 };

  const hiddenDescriptor = Object.getOwnPropertyDescriptor(Document.prototype, 'hidden');
  const reallyHidden = () => !!(hiddenDescriptor && hiddenDescriptor.get && hiddenDescriptor.get.call(document));
  try {
    Object.defineProperty(document, 'visibilityState', { get: () => 'visible', configurable: true });
    Object.defineProperty(document, 'hidden', { get: () => false, configurable: true });
  } catch (e) {
    state.visibility_patch_failed = true;
  }

  const nativeAdd = document.addEventListener;
  const nativeRemove = document.removeEventListener;
  const guarded = new WeakMap();
  document.addEventListener = function (type, listener, options) {
    if (type === 'visibilitychange' && listener) {
      let guard = guarded.get(listener);
      if (!guard) {
        guard = function (event) {
          if (reallyHidden()) {
            state.suppressed += 1;
            return undefined;
          }
          return typeof listener === 'function' ? listener.call(this, event) : listener.handleEvent(event);
        };
        guarded.set(listener, guard);
      }
      return nativeAdd.call(this, type, guard, options);
    }
    return nativeAdd.call(this, type, listener, options);
  };
  document.removeEventListener = function (type, listener, options) {
    if (type === 'visibilitychange' && listener && guarded.has(listener)) {
      return nativeRemove.call(this, type, guarded.get(listener), options);
    }
    return nativeRemove.call(this, type, listener, options);
  };

  state.online_timer = setInterval(() => {
    if (!navigator.onLine) {
      try {
        Object.defineProperty(navigator, 'onLine', { get: () => true, configurable: true });
      } catch (e) {
        state.online_patch_failed = true;
      }
    }
  }, payload.online_interval_ms);

  const generating = payload.generating_selectors.join(', ');
  state.scroll_timer = setInterval(() => {
    let active = false;
    try {
      active = document.querySelector(generating) !== null;
    } catch (e) {
      active = false;
    }
    if (!active) return;
    const root = document.scrollingElement || document.documentElement;
    const top = root.scrollTop;
    root.scrollTop = top + 1;
    setTimeout(() => { root.scrollTop = top; }, 10);
  }, payload.scroll_interval_ms);

  return { applied: true, already_applied: false };
}"""
