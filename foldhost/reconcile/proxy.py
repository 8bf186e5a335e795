"""nginx config generation for the whole host.

The output is a pure function of (topology, ports, layout, certified): the
same inputs always render the same bytes, so the file can be overwritten
blindly.
"""

from foldhost.config import RemoteLayout

_TLS_SETTINGS = """    ssl_protocols TLSv1.2 TLSv1.3;
    ssl_prefer_server_ciphers off;"""

_ASSET_EXTENSIONS = "js|css|png|jpg|jpeg|gif|ico|svg|woff|woff2|ttf|eot"


def _tls_server_head(subject, layout):
    return f"""    listen 443 ssl http2;
    listen [::]:443 ssl http2;
    server_name {subject};
    ssl_certificate {layout.certs_live}/{subject}/fullchain.pem;
    ssl_certificate_key {layout.certs_live}/{subject}/privkey.pem;
{_TLS_SETTINGS}"""


def http_redirect_block(root_domain, layout):
    """Port 80 for every subject: ACME challenges served, everything else -> https."""
    return f"""# HTTP - ACME challenges and redirect to HTTPS
server {{
    listen 80;
    listen [::]:80;
    server_name *.{root_domain} {root_domain};
    location /.well-known/acme-challenge/ {{ root {layout.acme_root}; }}
    location / {{ return 301 https://$host$request_uri; }}
}}
"""


def root_block(root_domain, layout):
    return f"""# Root domain
server {{
{_tls_server_head(root_domain, layout)}
    root {layout.root_content};
    index index.html;
    location / {{ try_files $uri $uri/ =404; }}
}}
"""


def static_block(app_name, root_domain, layout):
    """Files from the app folder, long-lived asset caching, SPA fallback."""
    subject = f"{app_name}.{root_domain}"
    return f"""# Static app - {app_name}
server {{
{_tls_server_head(subject, layout)}
    root {layout.app_dir(app_name)};
    index index.html index.htm;
    add_header X-Frame-Options "SAMEORIGIN" always;
    add_header X-Content-Type-Options "nosniff" always;
    gzip on;
    gzip_types text/plain text/css application/json application/javascript text/xml application/xml;
    location / {{ try_files $uri $uri/ /index.html =404; }}
    location ~* \\.({_ASSET_EXTENSIONS})$ {{
        expires 30d;
        add_header Cache-Control "public, immutable";
    }}
}}
"""


def proxy_block(app_name, port, root_domain, layout):
    """Reverse proxy to the app's host port; Upgrade headers keep websockets working."""
    subject = f"{app_name}.{root_domain}"
    return f"""# Containerized app - {app_name} -> port {port}
server {{
{_tls_server_head(subject, layout)}
    location / {{
        proxy_pass http://127.0.0.1:{port};
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection 'upgrade';
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_cache_bypass $http_upgrade;
    }}
}}
"""


def generate_proxy_config(topology, ports, layout=None, certified=None):
    """Render the complete routing document for the host.

    Blocks, in order: plaintext redirect, root domain, then one block per app
    in topology order. ``certified`` is the set of subjects with certificate
    material on the target; secured blocks for any other subject are left out,
    since nginx refuses to load a config naming a missing certificate. None
    renders every block.
    """
    layout = layout or RemoteLayout()
    domain = topology.root_domain

    def _has_cert(subject):
        return certified is None or subject in certified

    blocks = [
        "# Managed by foldhost - regenerated on every deploy, do not edit\n",
        http_redirect_block(domain, layout),
    ]
    if _has_cert(domain):
        blocks.append(root_block(domain, layout))
    for app in topology.apps:
        if app.is_containerized:
            port = ports.port_for(app.name)
            if port is None:
                raise ValueError(f"No port assigned to containerized app '{app.name}'")
            if _has_cert(app.subject(domain)):
                blocks.append(proxy_block(app.name, port, domain, layout))
        elif _has_cert(app.subject(domain)):
            blocks.append(static_block(app.name, domain, layout))
    return "\n".join(blocks)
