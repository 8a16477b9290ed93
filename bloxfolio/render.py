"""Static HTML rendering for published portfolios.

The page is a Handlebars template. Double-stash expressions are HTML-escaped
by pybars, so every piece of user or model text goes through one. Theme values
end up inside a <style> block where entity escaping does not help, so colors
and lengths are stripped of CSS breakout characters and font names are
reduced to letters, digits, spaces and hyphens before rendering. Image and
game links survive only if they are absolute http(s) URLs. The response
carries a CSP that forbids scripts outright.
"""

import re
from collections.abc import Callable
from datetime import datetime, timezone
from urllib.parse import urlparse

import pybars

from bloxfolio.models import Portfolio, Theme
from bloxfolio.normalizer import DEFAULT_THEME

_CSS_BREAKOUT_RE = re.compile(r"[;{}()<>\\/\"'`]")
_FONT_NAME_RE = re.compile(r"[^a-zA-Z0-9 -]")

PAGE_HEADERS = {
    "Content-Type": "text/html; charset=utf-8",
    "Cache-Control": "public, max-age=60",
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
        "font-src https://fonts.gstatic.com; "
        "img-src 'self' https: data:; "
        "script-src 'none';"
    ),
}


def sanitize_css_value(value: str) -> str:
    return _CSS_BREAKOUT_RE.sub("", value)


def sanitize_font_name(name: str) -> str:
    return _FONT_NAME_RE.sub("", name)


def is_allowed_url(url: str | None) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


PAGE_TEMPLATE = """\
<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<title>{{username}} | Bloxfolio</title>
<link rel="preconnect" href="https://fonts.googleapis.com">
<link rel="preconnect" href="https://fonts.gstatic.com" crossorigin>
<link href="https://fonts.googleapis.com/css2?family={{theme.fontBodyUrl}}:wght@300;400;500;600;700&family={{theme.fontDisplayUrl}}:wght@400;500;600;700;800&display=swap" rel="stylesheet">
<style>
:root {
  --bg: {{theme.bg}};
  --bg-surface: {{theme.bgSurface}};
  --ink: {{theme.ink}};
  --accent: {{theme.accent}};
  --radius: {{theme.radius}};
  --font-body: '{{theme.fontBody}}', ui-sans-serif, system-ui, sans-serif;
  --font-display: '{{theme.fontDisplay}}', sans-serif;
  --font-mono: "JetBrains Mono", ui-monospace, Menlo, Consolas, monospace;
  --border: rgba(255, 255, 255, 0.1);
}
* { box-sizing: border-box; }
body { margin: 0; font-family: var(--font-body); background: var(--bg); color: var(--ink); }
h1, h2, h3, h4 { font-family: var(--font-display); font-weight: 700; text-transform: uppercase; margin: 0; }
a { color: inherit; text-decoration: none; }
.header { display: flex; justify-content: space-between; align-items: center; padding: 2.5rem 4rem; border-bottom: 2px solid var(--border); }
.logo { font-family: var(--font-display); font-weight: 800; font-size: 2rem; color: var(--accent); }
.nav { display: flex; gap: 3rem; font-family: var(--font-mono); text-transform: uppercase; }
.hero { min-height: 80vh; display: flex; flex-direction: column; justify-content: center; padding: 4rem; border-bottom: 2px solid var(--border); }
.headline { font-size: clamp(4rem, 10vw, 9rem); line-height: 0.85; margin-bottom: 2rem; }
.pitch { font-size: clamp(1.5rem, 3vw, 2.5rem); color: #888; line-height: 1.4; max-width: 800px; }
.section { padding: 8rem 4rem; border-bottom: 2px solid var(--border); display: grid; grid-template-columns: 1fr 3fr; gap: 4rem; }
.section-title { font-size: clamp(2.5rem, 5vw, 4rem); color: var(--accent); align-self: start; }
.about { font-size: 1.75rem; line-height: 1.6; max-width: 800px; }
.projects { display: grid; gap: 4rem; }
.project { background: var(--bg-surface); border: 1px solid var(--border); border-radius: var(--radius); overflow: hidden; }
.project-image { width: 100%; aspect-ratio: 16 / 9; object-fit: cover; }
.project-body { padding: 4rem; display: flex; flex-direction: column; gap: 2rem; }
.stack span { font-family: var(--font-mono); padding: 0.5rem 1rem; border: 1px solid var(--border); color: var(--accent); }
.impact { font-family: var(--font-mono); padding: 1.5rem; border-left: 4px solid var(--accent); }
.game-link { align-self: flex-start; font-family: var(--font-mono); background: var(--accent); color: #000; padding: 1rem 1.5rem; text-transform: uppercase; }
.skills { display: flex; flex-wrap: wrap; gap: 1.5rem; }
.skill { font-family: var(--font-display); font-size: 2.5rem; padding: 1.5rem 2.5rem; border: 2px solid var(--border); border-radius: var(--radius); }
.extra-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(300px, 1fr)); gap: 3rem; }
.extra-block { padding: 3rem; border: 1px solid var(--border); border-radius: var(--radius); }
.footer { padding: 10rem 4rem 4rem; background: var(--accent); color: #000; }
.cta { font-size: clamp(3rem, 8vw, 7rem); line-height: 0.9; margin-bottom: 6rem; }
.footer-bottom { display: flex; justify-content: space-between; font-family: var(--font-mono); text-transform: uppercase; }
@media (max-width: 900px) {
  .section { grid-template-columns: 1fr; gap: 2rem; }
  .header, .hero, .section, .footer, .project-body { padding: 2rem; }
}
</style>
</head>
<body>
  <header class="header">
    <div class="logo">PORTFOLIO</div>
    <nav class="nav">
      <a href="#about">About</a>
      <a href="#projects">Work</a>
      <a href="#skills">Expertise</a>
    </nav>
  </header>

  <section class="hero">
    <h1 class="headline">{{headline}}</h1>
    <p class="pitch">{{elevatorPitch}}</p>
  </section>

  <section id="about" class="section">
    <div class="section-title">01 / About</div>
    <div class="about"><p>{{about}}</p></div>
  </section>

  <section id="projects" class="section">
    <div class="section-title">02 / Selected Works</div>
    <div class="projects">
      {{#each projects}}
      <div class="project">
        {{#if imageUrl}}<img src="{{imageUrl}}" alt="{{name}}" class="project-image" />{{/if}}
        <div class="project-body">
          <h3>{{name}}</h3>
          <div class="stack">{{#each stack}}<span>{{this}}</span>{{/each}}</div>
          <div class="summary">{{summary}}</div>
          <div class="impact">{{impact}}</div>
          {{#if gameUrl}}<a href="{{gameUrl}}" target="_blank" rel="noopener noreferrer" class="game-link">[ Play experience ]</a>{{/if}}
        </div>
      </div>
      {{/each}}
    </div>
  </section>

  <section id="skills" class="section">
    <div class="section-title">03 / Expertise</div>
    <div class="skills">{{#each skills}}<div class="skill">{{this}}</div>{{/each}}</div>
  </section>

  {{#if sections}}
  <section class="section">
    <div class="section-title">04 / More</div>
    <div class="extra-grid">
      {{#each sections}}
      <div class="extra-block">
        <h4>{{title}}</h4>
        <p>{{body}}</p>
      </div>
      {{/each}}
    </div>
  </section>
  {{/if}}

  <footer class="footer">
    <h2 class="cta">{{cta}}</h2>
    <div class="footer-bottom">
      <span>&copy; {{year}} {{username}}</span>
      <span>Built with Bloxfolio</span>
    </div>
  </footer>
</body>
</html>
"""

_compiler = pybars.Compiler()
_page: Callable | None = None


def _template() -> Callable:
    global _page
    if _page is None:
        _page = _compiler.compile(PAGE_TEMPLATE)
    return _page


def _theme_context(theme: Theme | None) -> dict[str, str]:
    wire = theme.to_wire() if theme is not None else dict(DEFAULT_THEME)
    font_body = sanitize_font_name(wire["fontBody"])
    font_display = sanitize_font_name(wire["fontDisplay"])
    return {
        "bg": sanitize_css_value(wire["bg"]),
        "bgSurface": sanitize_css_value(wire["bgSurface"]),
        "ink": sanitize_css_value(wire["ink"]),
        "accent": sanitize_css_value(wire["accent"]),
        "radius": sanitize_css_value(wire["radius"]),
        "fontBody": font_body,
        "fontDisplay": font_display,
        "fontBodyUrl": re.sub(r"\s+", "+", font_body),
        "fontDisplayUrl": re.sub(r"\s+", "+", font_display),
    }


def page_context(portfolio: Portfolio, *, year: int | None = None) -> dict:
    projects = []
    for p in portfolio.highlighted_projects:
        projects.append({
            "name": p.name,
            "summary": p.summary,
            "impact": p.impact,
            "stack": list(p.stack),
            "imageUrl": p.image_url if is_allowed_url(p.image_url) else "",
            "gameUrl": p.game_url if is_allowed_url(p.game_url) else "",
        })
    return {
        "username": portfolio.roblox_username,
        "headline": portfolio.headline,
        "elevatorPitch": portfolio.elevator_pitch,
        "about": portfolio.about,
        "skills": list(portfolio.skills),
        "projects": projects,
        "sections": [b.model_dump() for b in portfolio.section_blocks],
        "cta": portfolio.cta,
        "theme": _theme_context(portfolio.theme),
        "year": str(year or datetime.now(timezone.utc).year),
    }


def render_portfolio_page(portfolio: Portfolio, *, year: int | None = None) -> str:
    return _template()(page_context(portfolio, year=year))
