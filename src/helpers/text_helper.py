"""General Methods for text"""


def truncate(text: str, length: int, suffix: str = "...") -> str:
    """Cut the text to length characters, adding the suffix when something was cut"""
    if len(text) <= length:
        return text
    return text[:length] + suffix


def failure_summary(error_message: str, length: int = 100) -> str:
    """Returns the check run summary for a failed review"""
    return f"Review failed: {error_message[:length]}..."


def render_template(template: str, **values: str) -> str:
    """Replace the __NAME__ placeholders in the template"""
    for name, value in values.items():
        template = template.replace(f"__{name.upper()}__", value)
    return template
