"""Message template loading and rendering."""

from pathlib import Path

import yaml


_templates: dict | None = None


def load_templates() -> dict:
    """
    Load message templates from YAML file.

    Caches templates after first load.
    """
    global _templates
    if _templates is not None:
        return _templates

    yaml_path = Path(__file__).parent / "messages.yaml"
    with open(yaml_path) as f:
        _templates = yaml.safe_load(f)

    return _templates


def render_message(template: str, context: dict) -> str:
    """
    Render a message template with context variables.

    Raises:
        KeyError: If a required variable is missing from context
    """
    return template.format(**context)


def get_message(message_type: str, part: str, context: dict) -> str:
    """
    Get and render one part of a message.

    Args:
        message_type: e.g., "create", "reminder", "summary"
        part: e.g., "content", "title", "description"
        context: Variables to substitute

    Returns:
        Rendered string
    """
    templates = load_templates()
    template = templates[message_type][part]
    return render_message(template, context)


def has_part(message_type: str, part: str) -> bool:
    return part in load_templates().get(message_type, {})
