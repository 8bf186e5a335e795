"""Root landing page: token substitution over an HTML template.

Recognized tokens are ``{{APPS}}``, ``{{APP_COUNT}}`` and ``{{DOMAIN}}``.
Existing templates depend on these names, so they must not change.
"""

import html
import os
import re

from foldhost.topology.classifier import ROOT_CONTENT_DIR

TOKEN_APPS = "{{APPS}}"
TOKEN_APP_COUNT = "{{APP_COUNT}}"
TOKEN_DOMAIN = "{{DOMAIN}}"

TEMPLATE_FILENAME = "index.html"

DEFAULT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{{DOMAIN}}</title>
  <style>
    body { font-family: system-ui, sans-serif; max-width: 40rem; margin: 4rem auto; padding: 0 1rem; }
    li { margin: 0.4rem 0; }
  </style>
</head>
<body>
  <h1>{{DOMAIN}}</h1>
  <p>{{APP_COUNT}} apps deployed</p>
  <ul>
{{APPS}}
  </ul>
</body>
</html>
"""


def app_links(topology):
    """One <li> link per app, in topology order."""
    lines = []
    for app in topology.apps:
        url = f"https://{app.subject(topology.root_domain)}"
        lines.append(f'    <li><a href="{html.escape(url)}">{html.escape(app.name)}</a></li>')
    return "\n".join(lines)


def build_tokens(topology):
    return {
        TOKEN_APPS: app_links(topology),
        TOKEN_APP_COUNT: str(len(topology.apps)),
        TOKEN_DOMAIN: topology.root_domain,
    }


def render_landing(template, tokens):
    """Replace every occurrence of each token in a single pass.

    Substituted values are never rescanned, so an app name that happens to
    look like a token is inserted verbatim.
    """
    if not tokens:
        return template
    pattern = re.compile("|".join(re.escape(token) for token in tokens))
    return pattern.sub(lambda m: tokens[m.group(0)], template)


def load_landing_template(local_root):
    """The repository's _root/index.html if present, else the built-in template."""
    path = os.path.join(local_root, ROOT_CONTENT_DIR, TEMPLATE_FILENAME)
    if os.path.isfile(path):
        with open(path, encoding="utf-8") as f:
            return f.read()
    return DEFAULT_TEMPLATE
