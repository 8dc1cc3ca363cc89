import re
import secrets
import string

from unidecode import unidecode

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def slugify(text):
    text = unidecode(text).lower()
    text = re.sub(r'[^a-z0-9]+', '-', text).strip('-')
    return text


def generate_tenant_identifier(name: str, max_base_length: int = 20, suffix_length: int = 6) -> str:
    """Slug of `name` cut to `max_base_length`, plus a random suffix, e.g. "city-general-k3x9qa"."""
    base = slugify(name)[:max_base_length].strip('-') or "tenant"
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(suffix_length))
    return f"{base}-{suffix}"
