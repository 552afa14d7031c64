import asyncio

from selenium.common.exceptions import WebDriverException

from app.features.analysis.criteria.base import Criterion, outcome, when
from app.features.analysis.schemas.analysis import Category, CheckStatus, Impact

CONTRAST_SCRIPT = """
function luminance(rgb) {
  const [r, g, b] = rgb.slice(0, 3).map(c => {
    c = c / 255;
    return c <= 0.03928 ? c / 12.92 : Math.pow((c + 0.055) / 1.055, 2.4);
  });
  return 0.2126 * r + 0.7152 * g + 0.0722 * b;
}
function channels(color) {
  const m = color.match(/[\\d.]+/g);
  return m ? m.map(Number) : null;
}
let low = 0, total = 0;
document.querySelectorAll('p, h1, h2, h3, h4, h5, h6, span, a, button').forEach(el => {
  if (el.offsetParent === null) return;
  const styles = window.getComputedStyle(el);
  const fg = channels(styles.color);
  const bg = channels(styles.backgroundColor);
  if (!fg || !bg || styles.backgroundColor === 'rgba(0, 0, 0, 0)') return;
  total++;
  const l1 = luminance(fg), l2 = luminance(bg);
  const ratio = (Math.max(l1, l2) + 0.05) / (Math.min(l1, l2) + 0.05);
  if (ratio < 4.5) low++;
});
return {low: low, total: total};
"""

FOCUS_STYLE_SCRIPT = """
let focusRules = 0, suppressed = 0;
for (const sheet of Array.from(document.styleSheets)) {
  let rules;
  try { rules = sheet.cssRules; } catch (e) { continue; }
  if (!rules) continue;
  for (const rule of Array.from(rules)) {
    if (!rule.selectorText || rule.selectorText.indexOf(':focus') === -1) continue;
    focusRules++;
    const s = rule.style;
    const noOutline = s.outline === 'none' || s.outlineStyle === 'none' || s.outline === '0' || s.outlineWidth === '0px';
    if (noOutline && !s.boxShadow && !s.border && !s.backgroundColor) suppressed++;
  }
}
return {focusRules: focusRules, suppressed: suppressed};
"""

TEXT_RESIZE_STYLE_ID = "__site_checker_text_resize"


async def check_color_contrast(page):
    try:
        result = await page.evaluate(CONTRAST_SCRIPT)
    except WebDriverException as e:
        return outcome(CheckStatus.warning, f"Could not check contrast: {e.msg or e}")

    total, low = result["total"], result["low"]
    ratio = (total - low) / total if total > 0 else 1
    return outcome(
        CheckStatus.passed if ratio >= 0.8 else CheckStatus.fail,
        f"{round(ratio * 100)}% of text elements have sufficient contrast ({total - low}/{total})",
        when(ratio < 0.8, "Improve color contrast for better readability", "Use tools like WebAIM Contrast Checker"),
    )


async def check_image_alt_text(page):
    images = await page.evaluate(
        "return Array.from(document.images).map(img => ({src: img.src, alt: img.getAttribute('alt')}));"
    )
    total = len(images)
    with_alt = sum(1 for img in images if (img.get("alt") or "").strip())

    if total == 0:
        status = CheckStatus.info
    else:
        status = CheckStatus.passed if with_alt == total else CheckStatus.fail
    return outcome(
        status,
        f"{with_alt}/{total} images have alt text",
        when(with_alt < total, "Add descriptive alt text to all images", 'Use empty alt="" for decorative images'),
    )


async def check_heading_structure(page):
    levels = await page.evaluate(
        "return Array.from(document.querySelectorAll('h1, h2, h3, h4, h5, h6'))"
        ".map(h => parseInt(h.tagName.charAt(1), 10));"
    )
    has_h1 = 1 in levels
    jumps = [
        f"Heading level jumps from h{prev} to h{cur}"
        for prev, cur in zip(levels, levels[1:])
        if cur > prev + 1
    ]
    proper = not jumps

    return outcome(
        CheckStatus.passed if has_h1 and proper else CheckStatus.fail,
        f"Found {len(levels)} headings. H1 present: {has_h1}. Hierarchy: {'Good' if proper else 'Issues found'}",
        when(not has_h1, "Add exactly one h1 element to the page")
        + when(not proper, "Fix heading hierarchy - avoid skipping levels")
        + jumps,
    )


async def check_aria_labels(page):
    elements = await page.evaluate("""
        const selector = 'button, a, input, select, textarea, [role="button"], [role="link"], [tabindex="0"]';
        return Array.from(document.querySelectorAll(selector)).map(el => ({
          labelled: !!(el.getAttribute('aria-label') || el.getAttribute('aria-labelledby')),
          text: (el.textContent || '').trim(),
          type: el.type || ''
        }));
    """)
    unlabeled = [
        el for el in elements
        if not el["labelled"] and not el["text"] and el["type"] not in ("submit", "button")
    ]
    total = len(elements)

    return outcome(
        CheckStatus.passed if not unlabeled else CheckStatus.warning,
        f"{total - len(unlabeled)}/{total} interactive elements have proper labeling",
        when(
            bool(unlabeled),
            "Add aria-label or aria-labelledby to unlabeled interactive elements",
            "Ensure buttons and links have descriptive text",
        ),
    )


async def check_keyboard_navigation(page):
    result = await page.evaluate("""
        const focusable = document.querySelectorAll(
          'a, button, input, select, textarea, [tabindex]:not([tabindex="-1"])').length;
        const tabindexes = Array.from(document.querySelectorAll('[tabindex]'))
          .map(el => parseInt(el.getAttribute('tabindex'), 10));
        return {focusable: focusable, positive: tabindexes.filter(t => t > 0).length};
    """)
    focusable, positive = result["focusable"], result["positive"]

    return outcome(
        CheckStatus.passed if focusable > 0 and positive == 0 else CheckStatus.warning,
        f"{focusable} focusable elements found. Positive tabindex usage: {positive}",
        when(positive > 0, "Avoid positive tabindex values - use natural tab order")
        + ["Test keyboard navigation with Tab key"],
    )


async def check_focus_indicators(page):
    result = await page.evaluate(FOCUS_STYLE_SCRIPT)
    suppressed = result["suppressed"]

    return outcome(
        CheckStatus.passed if suppressed == 0 else CheckStatus.warning,
        f"{result['focusRules']} :focus rules found, {suppressed} remove the outline without a replacement",
        when(suppressed > 0, "Add visible focus indicators for better keyboard accessibility"),
    )


async def check_form_labels(page):
    inputs = await page.evaluate("""
        const skip = ['hidden', 'submit', 'button', 'reset', 'image'];
        return Array.from(document.querySelectorAll('input, select, textarea'))
          .filter(input => skip.indexOf((input.type || '').toLowerCase()) === -1)
          .map(input => ({
            labelled: !!(input.id && document.querySelector('label[for="' + CSS.escape(input.id) + '"]'))
              || !!input.closest('label')
              || !!input.getAttribute('aria-label')
              || !!input.getAttribute('aria-labelledby')
          }));
    """)
    total = len(inputs)
    labelled = sum(1 for item in inputs if item["labelled"])

    if total == 0:
        status = CheckStatus.info
    else:
        status = CheckStatus.passed if labelled == total else CheckStatus.fail
    return outcome(
        status,
        f"{labelled}/{total} form inputs have labels",
        when(labelled < total, "Add explicit labels to all form inputs"),
    )


VAGUE_LINK_TEXTS = {"click here", "read more", "here", "more", "link", "learn more", "click"}


async def check_link_purpose(page):
    links = await page.evaluate("""
        return Array.from(document.querySelectorAll('a[href]')).map(link => ({
          text: (link.textContent || '').trim().toLowerCase(),
          described: !!(link.getAttribute('aria-label') || link.title)
        }));
    """)
    vague = sum(1 for link in links if link["text"] in VAGUE_LINK_TEXTS and not link["described"])

    return outcome(
        CheckStatus.passed if vague == 0 else CheckStatus.warning,
        f"{len(links)} links found, {vague} with vague text",
        when(vague > 0, 'Use descriptive link text instead of "click here" or "read more"'),
    )


async def check_error_identification(page):
    result = await page.evaluate("""
        return {
          errors: document.querySelectorAll('[role="alert"], [aria-live], .error, .invalid, [aria-invalid="true"], [aria-errormessage]').length,
          required: document.querySelectorAll('[required], [aria-required="true"]').length
        };
    """)
    errors, required = result["errors"], result["required"]

    return outcome(
        CheckStatus.info if required == 0 else CheckStatus.passed,
        f"{required} required fields, {errors} error indicators found",
        when(required > 0 and errors == 0, "Add error identification for form validation"),
    )


async def check_language_declaration(page):
    lang = await page.evaluate("return document.documentElement.getAttribute('lang');")
    lang = (lang or "").strip()

    return outcome(
        CheckStatus.passed if lang else CheckStatus.fail,
        f"HTML lang attribute: {lang or 'Not set'}",
        when(not lang, "Add lang attribute to html element"),
    )


async def check_skip_links(page):
    skip_links = await page.evaluate("""
        return Array.from(document.querySelectorAll('a[href^="#"]')).filter(link => {
          const text = (link.textContent || '').toLowerCase();
          return text.indexOf('skip') !== -1 || text.indexOf('jump') !== -1;
        }).length;
    """)

    return outcome(
        CheckStatus.passed if skip_links > 0 else CheckStatus.warning,
        f"{skip_links} skip links found",
        when(skip_links == 0, "Consider adding skip navigation links"),
    )


async def check_color_independence(page):
    # Leaf text rendered in a saturated red without a textual marker
    count = await page.evaluate("""
        let count = 0;
        document.querySelectorAll('body *').forEach(el => {
          if (el.children.length > 0 || el.offsetParent === null) return;
          const text = (el.textContent || '').trim();
          if (!text) return;
          const m = window.getComputedStyle(el).color.match(/[\\d.]+/g);
          if (!m) return;
          const [r, g, b] = m.map(Number);
          const lower = text.toLowerCase();
          if (r > 200 && g < 80 && b < 80 && text.indexOf('*') === -1
              && lower.indexOf('required') === -1 && lower.indexOf('error') === -1) {
            count++;
          }
        });
        return count;
    """)

    return outcome(
        CheckStatus.passed if count < 5 else CheckStatus.warning,
        f"{count} potential color-only indicators",
        when(count >= 5, "Ensure information is not conveyed by color alone"),
    )


async def check_text_resize(page):
    await page.evaluate(
        """
        const style = document.createElement('style');
        style.id = arguments[0];
        style.textContent = 'body { font-size: 200% !important; }';
        document.head.appendChild(style);
        """,
        TEXT_RESIZE_STYLE_ID,
    )
    try:
        await asyncio.sleep(0.5)
        overflow = await page.evaluate("return document.body.scrollWidth > window.innerWidth;")
    finally:
        await page.evaluate(
            "const style = document.getElementById(arguments[0]); if (style) style.remove();",
            TEXT_RESIZE_STYLE_ID,
        )

    return outcome(
        CheckStatus.warning if overflow else CheckStatus.passed,
        f"Text resize test: {'Causes horizontal scroll' if overflow else 'Passes'}",
        when(overflow, "Ensure text can be resized to 200% without horizontal scrolling"),
    )


async def check_media_controls(page):
    media = await page.evaluate("""
        return Array.from(document.querySelectorAll('audio, video')).map(el => ({
          controls: el.hasAttribute('controls'),
          autoplay: el.hasAttribute('autoplay'),
          muted: el.hasAttribute('muted') || el.muted
        }));
    """)
    uncontrolled = sum(1 for el in media if not el["controls"] and el["autoplay"] and not el["muted"])

    if not media:
        status = CheckStatus.info
    else:
        status = CheckStatus.passed if uncontrolled == 0 else CheckStatus.fail
    return outcome(
        status,
        f"{len(media)} media elements, {uncontrolled} without proper controls",
        when(uncontrolled > 0, "Add controls to media elements or ensure they are muted"),
    )


async def check_aria_landmarks(page):
    landmarks = await page.evaluate(
        "return document.querySelectorAll('[role=\"main\"], [role=\"navigation\"], [role=\"banner\"], "
        "[role=\"contentinfo\"], main, nav, header, footer').length;"
    )

    return outcome(
        CheckStatus.passed if landmarks >= 2 else CheckStatus.warning,
        f"{landmarks} ARIA landmarks found",
        when(landmarks < 2, "Add semantic HTML5 elements or ARIA landmarks"),
    )


def _criterion(id, name, description, impact, check):
    return Criterion(id=id, name=name, description=description,
                     category=Category.accessibility, impact=impact, check=check)


ACCESSIBILITY_CRITERIA = (
    _criterion("a11y-001", "Color Contrast Ratio", "Text has sufficient color contrast ratio (minimum 4.5:1)",
               Impact.critical, check_color_contrast),
    _criterion("a11y-002", "Alt Text for Images", "All images have descriptive alt text",
               Impact.major, check_image_alt_text),
    _criterion("a11y-003", "Heading Structure", "Proper heading hierarchy (h1-h6)",
               Impact.major, check_heading_structure),
    _criterion("a11y-004", "ARIA Labels", "Interactive elements have appropriate ARIA labels",
               Impact.major, check_aria_labels),
    _criterion("a11y-005", "Keyboard Navigation", "All interactive elements are keyboard accessible",
               Impact.critical, check_keyboard_navigation),
    _criterion("a11y-006", "Focus Indicators", "Visible focus indicators for keyboard navigation",
               Impact.major, check_focus_indicators),
    _criterion("a11y-007", "Form Labels", "All form inputs have associated labels",
               Impact.critical, check_form_labels),
    _criterion("a11y-008", "Link Purpose", "Links have clear and descriptive text",
               Impact.major, check_link_purpose),
    _criterion("a11y-009", "Error Identification", "Form errors are clearly identified",
               Impact.major, check_error_identification),
    _criterion("a11y-010", "Language Declaration", "Page language is declared",
               Impact.minor, check_language_declaration),
    _criterion("a11y-011", "Skip Links", "Skip navigation links are provided",
               Impact.minor, check_skip_links),
    _criterion("a11y-012", "Color Independence", "Information not conveyed by color alone",
               Impact.major, check_color_independence),
    _criterion("a11y-013", "Text Resize", "Text can be resized up to 200% without loss of functionality",
               Impact.minor, check_text_resize),
    _criterion("a11y-014", "Audio/Video Controls", "Media elements have proper controls",
               Impact.major, check_media_controls),
    _criterion("a11y-015", "ARIA Landmarks", "Page uses ARIA landmarks appropriately",
               Impact.minor, check_aria_landmarks),
)
