# formrelay/utils.py

import logging
from datetime import datetime, timezone

# Placeholder name -> value used when the field was not submitted
PLACEHOLDER_DEFAULTS = {
    'website_id': 'Unknown',
    'name': 'Anonymous',
    'email': 'No email provided',
    'phone': 'No phone provided',
    'rooms': 'Not specified',
    'service': 'Not specified',
    'message': 'No details provided.',
}


def load_template(filepath):
    """Reads an HTML template. Errors are logged and re-raised for the caller."""
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return f.read()
    except OSError as e:
        logging.error(f"Could not read template {filepath}: {e}")
        raise


def render_template(html, fields):
    """Replaces every {{placeholder}} with the submitted value or its default."""
    for key, default in PLACEHOLDER_DEFAULTS.items():
        html = html.replace('{{' + key + '}}', fields.get(key) or default)
    return html


def is_truthy(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def utc_now_iso():
    return datetime.now(timezone.utc).isoformat()
