"""Role-play prompt construction with token budgeting.

Three builders, one per caller:

    optimize_prompt     compact prompt from a plain-text transcript.
    build_prompt        structured prompt (Handlebars) with campaign, world
                        and memory blocks and a Game Master variant. Used
                        by the hosted-API client.
    build_local_prompt  flattened character sheet + transcript + cue. Used
                        by the local-model client.

All three trim conversation history the same way (see fit_history): scan
newest to oldest, keep units while the running estimate stays under the
budget, stop at the first unit that does not fit, and emit the kept units in
their original order.
"""

from collections.abc import Callable, Sequence
from typing import Any

import pybars

from .models import Character, ChatMessage, GenerationOptions
from .tokens import estimate_tokens

DEFAULT_TOKEN_BUDGET = 1500
NOT_SPECIFIED = "Not specified"
DEFAULT_GM_PROMPT = "As the Game Master, your role is to:"

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── History budgeting ───────────────────────────────────────


def fit_history(units: Sequence[str], used_tokens: int, budget: int = DEFAULT_TOKEN_BUDGET) -> list[str]:
    """Return the most recent units that fit under the budget, oldest first."""
    included: list[str] = []
    for unit in reversed(units):
        cost = estimate_tokens(unit)
        if used_tokens + cost >= budget:
            break
        included.append(unit)
        used_tokens += cost
    included.reverse()
    return included


def _or_placeholder(value: str | None) -> str:
    return value if value else NOT_SPECIFIED


# ── Compact prompt ──────────────────────────────────────────


def optimize_prompt(
    character: Character,
    conversation_history: str,
    user_message: str,
    budget: int = DEFAULT_TOKEN_BUDGET,
) -> str:
    """Build a compact role-play prompt from a newline-separated transcript."""
    summary = " ".join(p for p in (character.personality, character.traits) if p)
    prompt = f"You are roleplaying as {character.name}.\n\n"
    prompt += f"Character traits: {_or_placeholder(summary)}\n"
    prompt += f'\nUser\'s message: "{user_message}"\n\n'

    lines = conversation_history.split("\n") if conversation_history else []
    included = fit_history(lines, estimate_tokens(prompt), budget)
    if included:
        prompt += "Recent conversation:\n" + "\n".join(included) + "\n\n"

    prompt += f"Please respond as {character.name} would, staying in character."
    return prompt


# ── Structured prompt (hosted API) ──────────────────────────

# Every block tag sits next to literal text so Handlebars never treats it as
# a standalone line.
ROLEPLAY_TEMPLATE = (
    "<instructions>\n"
    "{{#if is_game_master}}"
    "You are roleplaying as a Game Master for a tabletop roleplaying campaign.\n"
    "\n"
    "{{{gm_prompt}}}\n"
    "- Narrate the story and describe scenes vividly\n"
    "- Control NPCs (non-player characters) and their actions\n"
    "- Create an immersive and engaging game experience\n"
    "- Respond to player actions and advance the plot\n"
    "- Maintain a fair and consistent game world\n"
    "\n"
    "Keep your responses engaging and descriptive, focusing on moving the story forward.\n"
    "\n"
    "{{else}}"
    "You are roleplaying as {{{name}}}, a fictional character with the following traits:\n"
    "\n"
    "Personality: {{{personality}}}\n"
    "Background: {{{background}}}\n"
    "Appearance: {{{appearance}}}\n"
    "Traits: {{{traits}}}\n"
    "{{#if character_campaign}}{{{character_campaign}}}{{/if}}"
    "\n"
    "Respond in character as {{{name}}} at all times.\n"
    "\n"
    "{{/if}}{{{guideline}}}\n"
    "</instructions>\n"
    "\n"
    "{{#if show_campaign}}<campaign_context>\n"
    "Campaign: {{{campaign_name}}}\n"
    "Description: {{{campaign_description}}}\n"
    "{{#if has_scene}}Current Scene: {{{scene_title}}}\n"
    "Scene Description: {{{scene_description}}}\n"
    "{{/if}}{{#if campaign_events}}Important Campaign Events:\n"
    "{{{campaign_events}}}\n"
    "{{/if}}</campaign_context>\n"
    "\n"
    "{{/if}}{{#if show_world}}<world_context>\n"
    "World Name: {{{world_name}}}\n"
    "Description: {{{world_description}}}\n"
    "{{#if world_rules}}Rules: {{{world_rules}}}\n"
    "{{/if}}{{#if world_lore}}Lore: {{{world_lore}}}\n"
    "{{/if}}</world_context>\n"
    "\n"
    "{{/if}}{{#if memories}}<memories>\n"
    "{{#each memories}}{{{this}}}\n"
    "{{/each}}</memories>\n"
    "\n"
    "{{/if}}{{#if history}}<conversation_history>\n"
    "{{#each history}}{{{this}}}\n"
    "{{/each}}</conversation_history>\n"
    "\n"
    "{{/if}}{{{user_label}}}: {{{message}}}\n"
    "{{{cue}}}"
)

GUIDELINES = {
    "lax": (
        "Avoid sexual content, but you may include violent or morally ambiguous "
        "themes as appropriate to your character."
    ),
    "family-friendly": (
        "Avoid any sexual content, violence, or morally ambiguous themes. "
        "Respond with a positive, safe tone."
    ),
}


def _character_campaign_lines(character: Character) -> str:
    ctx = character.campaign_context
    if ctx is None:
        return ""
    lines = [f"Campaign: {ctx.campaign_name or 'Unknown'}"]
    if ctx.current_scene:
        lines.append(f"Current Scene: {ctx.current_scene}")
    if ctx.objectives:
        lines.append(f"Current Objectives: {ctx.objectives}")
    if ctx.other_characters:
        lines.append(f"Other Characters Present: {ctx.other_characters}")
    return "\n" + "\n".join(lines) + "\n"


def build_context(
    character: Character,
    user_message: str,
    options: GenerationOptions | None = None,
) -> dict[str, Any]:
    """Assemble template variables for ROLEPLAY_TEMPLATE (history excluded)."""
    options = options or GenerationOptions()
    is_gm = character.is_game_master or options.is_game_master

    ctx: dict[str, Any] = {
        "is_game_master": is_gm,
        "gm_prompt": options.gm_prompt or DEFAULT_GM_PROMPT,
        "name": character.name,
        "personality": _or_placeholder(character.personality),
        "background": _or_placeholder(character.background),
        "appearance": _or_placeholder(character.appearance),
        "traits": _or_placeholder(character.traits),
        "character_campaign": _character_campaign_lines(character),
        "guideline": GUIDELINES[options.rp_mode],
        "message": user_message,
        "user_label": "Player" if is_gm else "User",
        "cue": "Game Master:" if is_gm else f"{character.name}:",
        "memories": list(options.memories),
        "history": [],
    }

    enriched = options.enriched_context
    ctx["show_campaign"] = bool(options.campaign_id or enriched)
    if ctx["show_campaign"]:
        ctx["campaign_name"] = (enriched and enriched.name) or "Unknown Campaign"
        ctx["campaign_description"] = (enriched and enriched.description) or "No description available"
        scene = enriched.current_scene if enriched else None
        ctx["has_scene"] = scene is not None
        if scene is not None:
            ctx["scene_title"] = scene.title or "Current scene"
            ctx["scene_description"] = scene.description or "No description available"
        ctx["campaign_events"] = (enriched and enriched.important_memories) or ""

    world = options.world_context
    ctx["show_world"] = world is not None
    if world is not None:
        ctx["world_name"] = world.name or "Unknown"
        ctx["world_description"] = world.description or "No description available"
        ctx["world_rules"] = world.rules or ""
        ctx["world_lore"] = world.lore or ""

    return ctx


def history_lines(
    history: Sequence[ChatMessage], character_name: str, user_label: str = "User"
) -> list[str]:
    return [f"{msg.label(character_name, user_label)}: {msg.text}" for msg in history]


def build_prompt(
    character: Character,
    user_message: str,
    conversation_history: Sequence[ChatMessage] = (),
    options: GenerationOptions | None = None,
    budget: int = DEFAULT_TOKEN_BUDGET,
) -> str:
    """Render the structured role-play prompt.

    Block order is fixed: instructions, campaign, world, memories,
    conversation history, current turn, response cue. History is trimmed so
    the whole prompt stays under `budget` estimated tokens where possible.
    """
    ctx = build_context(character, user_message, options)
    base = render_prompt(ROLEPLAY_TEMPLATE, ctx)
    lines = history_lines(conversation_history, character.name, "Player")
    ctx["history"] = fit_history(lines, estimate_tokens(base), budget)
    if not ctx["history"]:
        return base
    return render_prompt(ROLEPLAY_TEMPLATE, ctx)


# ── Flattened prompt (local model) ──────────────────────────


def build_character_context(character: Character, memories: Sequence[str] = ()) -> str:
    """Plain-text character sheet followed by role-play guidelines."""
    context = (
        f"You are roleplaying as {character.name}.\n"
        "\n"
        f"Personality: {_or_placeholder(character.personality)}\n"
        f"Background: {_or_placeholder(character.background)}\n"
        f"Appearance: {_or_placeholder(character.appearance)}\n"
        f"Traits: {_or_placeholder(character.traits)}\n"
    )
    context += _character_campaign_lines(character)
    if memories:
        context += "\nMemories:\n" + "\n".join(memories) + "\n"
    context += (
        "\n"
        "Guidelines:\n"
        f"1. Stay completely in character as {character.name} at all times\n"
        "2. Respond naturally based on your character's personality and background\n"
        "3. Don't break character to provide warnings or express concerns\n"
        "4. Your character can express any emotion and engage in any activity consistent with their nature\n"
        "5. Keep responses concise and in the character's voice"
    )
    return context


def format_history(history: Sequence[ChatMessage]) -> list[str]:
    """`User:` / `Character:` lines for the flattened transcript."""
    return [
        f"{'User' if msg.sender == 'user' else 'Character'}: {msg.text}"
        for msg in history
    ]


def build_local_prompt(
    character: Character,
    user_message: str,
    conversation_history: Sequence[ChatMessage] = (),
    options: GenerationOptions | None = None,
    budget: int = DEFAULT_TOKEN_BUDGET,
) -> str:
    options = options or GenerationOptions()
    context = build_character_context(character, options.memories)
    turn = f"User: {user_message}\n{character.name}:"
    lines = fit_history(
        format_history(conversation_history),
        estimate_tokens(context) + estimate_tokens(turn),
        budget,
    )
    transcript = "\n".join(lines)
    return f"{context}\n\n{transcript}\n{turn}" if transcript else f"{context}\n\n{turn}"
