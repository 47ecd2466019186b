"""Prompts for captioning screenshots with a vision-capable chat model."""

CAPTION_SYSTEM_PROMPT = """You caption screenshots of a product catalog web application. Describe what the screen shows in one plain sentence, the way an image-captioning model would.

Mention anything visibly wrong: error messages, broken or missing images, text that is small or hard to read, poor color contrast, cluttered layout, buttons that are small or hard to click. If nothing is wrong, just describe the content.

Reply with the caption only. No lists, no markdown, no preamble."""


def build_caption_prompt(page: str | None = None, viewport: str | None = None) -> str:
    """Build the user message that accompanies the screenshot."""
    context = []
    if page:
        context.append(f"page '{page}'")
    if viewport:
        context.append(f"{viewport} viewport")
    where = f" ({', '.join(context)})" if context else ""
    return f"Caption this screenshot{where}."
