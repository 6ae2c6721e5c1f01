from __future__ import annotations

import logging

import openai
from langchain_openai import ChatOpenAI

from procscribe import settings
from procscribe.prompts import PromptCache

log = logging.getLogger(__name__)


def _substitute(template: str, variables: dict[str, str] | None) -> str:
    """
    Replace placeholders like {CONTEXT} with their values using str.format.
    Non‑string values are cast to str so you can pass numbers, etc.
    """
    if not variables:
        return template

    safe_vars = {k: str(v) for k, v in variables.items()}
    try:
        return template.format(**safe_vars)
    except KeyError as err:
        missing = err.args[0]
        raise ValueError(f"Prompt expects placeholder {{{missing}}} which "
                         "was not supplied in `variables`.") from None


def render_prompt(
    prompt_name: str,
    variables: dict[str, str] | None = None,
    *,
    prompts: PromptCache | None = None,
) -> str:
    cache = prompts or PromptCache()
    return _substitute(cache.get(prompt_name), variables)


def call_llm(
    prompt_name: str,
    variables: dict[str, str] | None = None,
    *,
    prompts: PromptCache | None = None,
    model: str | None = None,
    max_tokens: int = 1024,
    temperature: float | None = None,
) -> str:
    """
    Universal OpenAI chat‑completion helper.

    • Prompts come from the injected `PromptCache` (built-ins by default).
    • Placeholders use *single braces* (e.g. {TEXT}).
    • `OPENAI_BASE_URL` lets the same call go through any compatible gateway.
    """
    prompt_text = render_prompt(prompt_name, variables, prompts=prompts)

    client = openai.OpenAI(api_key=settings.api_key(), base_url=settings.OPENAI_BASE_URL)
    response = client.chat.completions.create(
        model=model or settings.MODEL,
        messages=[{"role": "system", "content": prompt_text}],
        max_tokens=max_tokens,
        temperature=settings.TEMPERATURE if temperature is None else temperature,
    )
    content = response.choices[0].message.content or ""
    log.debug("LLM %s → %d chars", prompt_name, len(content))
    return content


def structured_llm(schema, *, model: str | None = None, temperature: float | None = None):
    """ChatOpenAI bound to a pydantic *schema*; `.invoke(prompt)` returns an instance."""
    llm = ChatOpenAI(
        model=model or settings.MODEL,
        temperature=settings.TEMPERATURE if temperature is None else temperature,
        api_key=settings.api_key(),
        base_url=settings.OPENAI_BASE_URL,
    )
    return llm.with_structured_output(schema)
