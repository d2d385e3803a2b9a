"""Strict helpers for reading XML style documents."""
import xml.etree.ElementTree as ET

from .errors import ConfigurationError


def load_document(path):
    """Parse an XML file and return its root element."""
    try:
        return ET.parse(str(path)).getroot()
    except (ET.ParseError, OSError) as err:
        raise ConfigurationError(f"Cannot parse {path}: {err}") from err


def query_all(node, tag):
    return node.findall(tag)


def query(node, tag):
    """Return the single child ``tag`` of ``node``.

    Raises
    ------
    ConfigurationError
        If the child is missing or not unique.
    """
    nodes = query_all(node, tag)
    if not nodes:
        raise ConfigurationError(f"Tag {tag} not found in {node.tag}")
    if len(nodes) > 1:
        raise ConfigurationError(f"Tag {tag} must be unique in {node.tag}")
    return nodes[0]


def optional(node, tag):
    """Like :func:`query` but returns None when the child is absent."""
    if not query_all(node, tag):
        return None
    return query(node, tag)


def text(node):
    """Stripped text of a leaf element, which may not be empty."""
    value = (node.text or "").strip()
    if not value:
        raise ConfigurationError(f"Tag {node.tag} may not be empty")
    return value


def as_int(node):
    try:
        return int(text(node))
    except ValueError:
        raise ConfigurationError(f"Tag {node.tag} must be an integer") from None


def as_float(node):
    try:
        return float(text(node))
    except ValueError:
        raise ConfigurationError(f"Tag {node.tag} must be a number") from None


def as_bool(node):
    value = text(node).lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"Tag {node.tag} must be a boolean")
