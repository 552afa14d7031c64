import asyncio
import re

from app.features.analysis.criteria.base import Criterion, outcome, when
from app.features.analysis.schemas.analysis import Category, CheckStatus, Impact

MOBILE_WIDTH = 375
MOBILE_HEIGHT = 667
MIN_TOUCH_TARGET = 44
MIN_FONT_SIZE = 16

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
PHONE_PATTERN = re.compile(r"\+?\d[\d\s().-]{7,}\d")


async def check_mobile_responsive(page):
    previous = page.viewport
    await page.set_viewport(MOBILE_WIDTH, MOBILE_HEIGHT)
    try:
        await asyncio.sleep(1)
        result = await page.evaluate("""
            return {
              hasViewportMeta: !!document.querySelector('meta[name="viewport"]'),
              horizontalScroll: document.documentElement.scrollWidth > window.innerWidth
            };
        """)
    finally:
        await page.set_viewport(previous.width, previous.height)

    ok = result["hasViewportMeta"] and not result["horizontalScroll"]
    return outcome(
        CheckStatus.passed if ok else CheckStatus.fail,
        f"Viewport meta: {'Yes' if result['hasViewportMeta'] else 'No'}, "
        f"Horizontal scroll: {'Yes' if result['horizontalScroll'] else 'No'}",
        when(not result["hasViewportMeta"], "Add viewport meta tag")
        + when(result["horizontalScroll"], "Fix horizontal scrolling on mobile"),
    )


async def check_navigation_structure(page):
    result = await page.evaluate("""
        const nav = document.querySelector('nav, [role="navigation"]');
        return {
          hasNav: !!nav,
          links: nav ? nav.querySelectorAll('a').length : 0,
          hasBreadcrumbs: !!document.querySelector('[aria-label*="breadcrumb" i], .breadcrumb, .breadcrumbs')
        };
    """)
    has_nav, links = result["hasNav"], result["links"]

    return outcome(
        CheckStatus.passed if has_nav and links > 0 else CheckStatus.warning,
        f"Navigation: {'Yes' if has_nav else 'No'} ({links} links), "
        f"Breadcrumbs: {'Yes' if result['hasBreadcrumbs'] else 'No'}",
        when(not has_nav, "Add clear navigation menu") + when(has_nav and links == 0, "Add links to the navigation"),
    )


async def check_touch_targets(page):
    result = await page.evaluate("""
        const min = arguments[0];
        const targets = Array.from(document.querySelectorAll('button, a, input[type="button"], input[type="submit"]'));
        const small = targets.filter(el => {
          const r = el.getBoundingClientRect();
          return r.width < min || r.height < min;
        });
        return {total: targets.length, small: small.length};
    """, MIN_TOUCH_TARGET)
    total, small = result["total"], result["small"]

    return outcome(
        CheckStatus.passed if small == 0 else CheckStatus.warning,
        f"{small}/{total} targets are smaller than {MIN_TOUCH_TARGET}x{MIN_TOUCH_TARGET}px",
        when(small > 0, f"Increase size of touch targets to at least {MIN_TOUCH_TARGET}x{MIN_TOUCH_TARGET} pixels"),
    )


async def check_font_size(page):
    result = await page.evaluate("""
        const min = arguments[0];
        const els = Array.from(document.querySelectorAll('p, li, td, span, a'))
          .filter(el => el.offsetParent !== null && (el.textContent || '').trim());
        const small = els.filter(el => parseFloat(getComputedStyle(el).fontSize) < min * 0.75);
        const body = document.body ? parseFloat(getComputedStyle(document.body).fontSize) : min;
        return {total: els.length, small: small.length, bodySize: body};
    """, MIN_FONT_SIZE)
    total, small, body_size = result["total"], result["small"], result["bodySize"]

    ok = body_size >= MIN_FONT_SIZE * 0.75 and (total == 0 or small / total < 0.2)
    return outcome(
        CheckStatus.passed if ok else CheckStatus.warning,
        f"Body font size {body_size}px, {small}/{total} text elements below {MIN_FONT_SIZE * 0.75:g}px",
        when(not ok, f"Use a base font size of at least {MIN_FONT_SIZE}px"),
    )


async def check_broken_images(page):
    result = await page.evaluate("""
        const imgs = Array.from(document.images).filter(img => img.getAttribute('src'));
        return {
          total: imgs.length,
          broken: imgs.filter(img => img.complete && img.naturalWidth === 0).map(img => img.src)
        };
    """)
    total, broken = result["total"], result["broken"]

    if total == 0:
        return outcome(CheckStatus.info, "No images found")
    return outcome(
        CheckStatus.passed if not broken else CheckStatus.fail,
        f"{len(broken)} of {total} images failed to load",
        when(bool(broken), "Fix or remove broken image references"),
    )


async def check_console_errors(page):
    errors = await page.console_errors()

    if not errors:
        status = CheckStatus.passed
    elif len(errors) <= 3:
        status = CheckStatus.warning
    else:
        status = CheckStatus.fail
    details = f"{len(errors)} console errors"
    if errors:
        details += f". First: {errors[0][:200]}"
    return outcome(
        status,
        details,
        when(bool(errors), "Fix JavaScript errors reported in the browser console"),
    )


async def check_search(page):
    has_search = await page.evaluate("""
        return !!document.querySelector(
          'input[type="search"], [role="search"], input[name*="search" i], input[placeholder*="search" i], form[action*="search" i]'
        );
    """)

    return outcome(
        CheckStatus.passed if has_search else CheckStatus.info,
        "Search functionality found" if has_search else "No search functionality found",
        when(not has_search, "Consider adding site search for content-heavy sites"),
    )


async def check_contact_information(page):
    result = await page.evaluate("""
        return {
          text: document.body ? document.body.innerText : '',
          contactLinks: document.querySelectorAll('a[href^="mailto:"], a[href^="tel:"], a[href*="contact" i]').length
        };
    """)
    text = result["text"]
    found = result["contactLinks"] > 0 or bool(EMAIL_PATTERN.search(text)) or bool(PHONE_PATTERN.search(text))

    return outcome(
        CheckStatus.passed if found else CheckStatus.warning,
        "Contact information found" if found else "No contact information found",
        when(not found, "Provide a contact page, email address or phone number"),
    )


async def check_footer(page):
    has_footer = await page.evaluate(
        "return !!document.querySelector('footer, [role=\"contentinfo\"]');"
    )

    return outcome(
        CheckStatus.passed if has_footer else CheckStatus.warning,
        "Footer present" if has_footer else "No footer found",
        when(not has_footer, "Add a footer with secondary navigation and site information"),
    )


async def check_intrusive_overlays(page):
    overlays = await page.evaluate("""
        const area = window.innerWidth * window.innerHeight;
        return Array.from(document.querySelectorAll('body *')).filter(el => {
          const s = getComputedStyle(el);
          if (s.position !== 'fixed' || s.display === 'none' || s.visibility === 'hidden') return false;
          const r = el.getBoundingClientRect();
          return r.width * r.height > area * 0.5;
        }).length;
    """)

    return outcome(
        CheckStatus.passed if overlays == 0 else CheckStatus.warning,
        f"{overlays} fixed overlays covering more than half the viewport",
        when(overlays > 0, "Avoid interstitials and popups that cover the main content"),
    )


async def check_empty_links(page):
    result = await page.evaluate("""
        const links = Array.from(document.querySelectorAll('a'));
        const empty = links.filter(a => {
          const href = (a.getAttribute('href') || '').trim();
          return !href || href === '#' || href.toLowerCase().indexOf('javascript:') === 0;
        });
        return {total: links.length, empty: empty.length};
    """)
    total, empty = result["total"], result["empty"]

    if total == 0:
        return outcome(CheckStatus.info, "No links found")
    return outcome(
        CheckStatus.passed if empty == 0 else CheckStatus.warning,
        f"{empty} of {total} links have no real destination",
        when(empty > 0, "Give every link a real href or use a button for actions"),
    )


async def check_form_input_types(page):
    result = await page.evaluate("""
        const inputs = Array.from(document.querySelectorAll('input'));
        const hinted = name => /e-?mail|phone|tel|url|website/i.test(name);
        const generic = inputs.filter(i => (i.getAttribute('type') || 'text') === 'text'
          && hinted((i.name || '') + ' ' + (i.id || '') + ' ' + (i.placeholder || '')));
        return {total: inputs.length, generic: generic.length};
    """)
    total, generic = result["total"], result["generic"]

    if total == 0:
        return outcome(CheckStatus.info, "No form inputs found")
    return outcome(
        CheckStatus.passed if generic == 0 else CheckStatus.warning,
        f"{generic} of {total} inputs use a generic text type where a specific one fits",
        when(generic > 0, "Use type=email, tel or url so mobile keyboards adapt"),
    )


def _criterion(id, name, description, impact, check):
    return Criterion(id=id, name=name, description=description, category=Category.usability, impact=impact, check=check)


USABILITY_CRITERIA = (
    _criterion("use-001", "Mobile Responsive", "Site is mobile responsive",
               Impact.critical, check_mobile_responsive),
    _criterion("use-002", "Navigation Structure", "Clear and consistent navigation",
               Impact.major, check_navigation_structure),
    _criterion("use-003", "Touch Target Size", "Touch targets are at least 44x44 pixels",
               Impact.major, check_touch_targets),
    _criterion("use-004", "Font Size Readability", "Text is large enough to read",
               Impact.major, check_font_size),
    _criterion("use-005", "Broken Images", "All images load successfully",
               Impact.major, check_broken_images),
    _criterion("use-006", "Console Errors", "No JavaScript errors in the console",
               Impact.major, check_console_errors),
    _criterion("use-007", "Search Functionality", "Site offers search",
               Impact.minor, check_search),
    _criterion("use-008", "Contact Information", "Contact details are easy to find",
               Impact.minor, check_contact_information),
    _criterion("use-009", "Footer Presence", "Page has a footer",
               Impact.minor, check_footer),
    _criterion("use-010", "Intrusive Overlays", "No overlays obscure the content",
               Impact.major, check_intrusive_overlays),
    _criterion("use-011", "Empty Links", "Links point to real destinations",
               Impact.minor, check_empty_links),
    _criterion("use-012", "Form Input Types", "Inputs use appropriate types",
               Impact.minor, check_form_input_types),
)
