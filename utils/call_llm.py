"""
================================================================================
CODEBASE TUTORIAL PIPELINE - LLM WRAPPER
================================================================================
The single text-generation interface used by every pipeline stage:

    call_llm(prompt, use_cache=True, system_instruction=None) -> str

Any callable with that signature can stand in for it (see flow.py), which is
how the tests run the whole pipeline against a deterministic stub.

PROVIDER PRIORITY (checked in this order):
==========================================
1. OPENAI_API_KEY     → Uses OpenAI API
2. GEMINI_API_KEY     → Uses Google Gemini API
3. GEMINI_PROJECT_ID  → Uses Vertex AI (requires ADC setup)
4. OPENROUTER_API_KEY → Uses OpenRouter (access to many models)
5. LLM_API_BASE_URL   → Uses any OpenAI-compatible API (Ollama, etc.)

FAILURES:
=========
Every backend failure (transport, auth, no choices, empty content) surfaces
as GeneratorError. Nothing is retried here; retries belong to the flow.

CACHING:
========
Responses are cached to llm_cache.json, keyed by system instruction + prompt.
Use --no-cache flag to disable caching.

LOGGING:
========
All prompts and responses are logged to logs/llm_calls_YYYYMMDD.log
================================================================================
"""

# =============================================================================
# IMPORTS
# =============================================================================
import os
import logging
import json
import sys
import time
from datetime import datetime

import requests
from dotenv import load_dotenv

from constants.llm import (
    LLM_PROVIDER_OPENAI,
    LLM_PROVIDER_GEMINI,
    LLM_PROVIDER_OPENROUTER,
    LLM_PROVIDER_GENERIC,
    ENV_OPENAI_API_KEY,
    ENV_OPENAI_MODEL,
    ENV_GEMINI_API_KEY,
    ENV_GEMINI_PROJECT_ID,
    ENV_GEMINI_LOCATION,
    ENV_GEMINI_MODEL,
    ENV_OPENROUTER_API_KEY,
    ENV_OPENROUTER_MODEL,
    ENV_OPENROUTER_REFERER,
    ENV_OPENROUTER_TITLE,
    ENV_LLM_API_BASE_URL,
    ENV_LLM_API_KEY,
    ENV_LLM_MODEL,
    ENV_LOG_DIR,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_GEMINI_LOCATION,
    DEFAULT_OPENROUTER_MODEL,
    DEFAULT_GENERIC_MODEL,
    DEFAULT_GENERIC_BASE_URL,
    OPENROUTER_API_URL,
    DEFAULT_TEMPERATURE,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_OPENROUTER_REFERER,
    DEFAULT_OPENROUTER_TITLE,
)
from constants.paths import (
    LOGS_DIR_NAME,
    CACHE_FILE_NAME,
    LOG_FILE_PREFIX,
    LOG_DATE_FORMAT,
)
from .errors import GeneratorError, InputValidationError

load_dotenv()  # Load environment variables from .env file

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
# Package root (parent of utils/), so logs and cache stay next to the code
_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

log_directory = os.getenv(ENV_LOG_DIR, os.path.join(_PACKAGE_DIR, LOGS_DIR_NAME))
os.makedirs(log_directory, exist_ok=True)

log_file = os.path.join(
    log_directory, f"{LOG_FILE_PREFIX}{datetime.now().strftime(LOG_DATE_FORMAT)}.log"
)

# Named logger so LLM traffic stays out of the root logger
logger = logging.getLogger("llm_logger")
logger.setLevel(logging.INFO)
logger.propagate = False

# Only add handler if not already present (prevents duplicate handlers on reimport)
if not logger.handlers:
    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(file_handler)

# =============================================================================
# CACHE CONFIGURATION
# =============================================================================
cache_file = os.path.join(_PACKAGE_DIR, CACHE_FILE_NAME)


def load_cache() -> dict:
    """
    Load the LLM response cache from disk.

    Returns:
        dict: The cache dictionary, or empty dict if cache doesn't exist
    """
    if os.path.exists(cache_file):
        try:
            with open(cache_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load cache: {e}")
    return {}


def save_cache(cache: dict) -> None:
    """Save the LLM response cache to disk."""
    try:
        with open(cache_file, "w", encoding="utf-8") as f:
            json.dump(cache, f, indent=2)
    except OSError as e:
        logger.warning(f"Failed to save cache: {e}")


def cache_key(prompt: str, system_instruction: str | None = None) -> str:
    """The same prompt under a different system instruction is a different call."""
    if not system_instruction:
        return prompt
    return f"{system_instruction}\n---\n{prompt}"


# =============================================================================
# PROVIDER DETECTION
# =============================================================================
def get_llm_provider() -> str:
    """
    Determine which LLM provider to use based on environment variables.

    The FIRST provider with a valid key will be used:
    OPENAI → GEMINI (API key or Vertex project) → OPENROUTER → GENERIC

    Raises:
        InputValidationError: If no provider is configured
    """
    if os.getenv(ENV_OPENAI_API_KEY):
        return LLM_PROVIDER_OPENAI
    elif os.getenv(ENV_GEMINI_API_KEY) or os.getenv(ENV_GEMINI_PROJECT_ID):
        return LLM_PROVIDER_GEMINI
    elif os.getenv(ENV_OPENROUTER_API_KEY):
        return LLM_PROVIDER_OPENROUTER
    elif os.getenv(ENV_LLM_API_BASE_URL):
        return LLM_PROVIDER_GENERIC
    else:
        raise InputValidationError(
            f"No LLM provider configured. Set one of: "
            f"{ENV_OPENAI_API_KEY}, {ENV_GEMINI_API_KEY}, {ENV_GEMINI_PROJECT_ID}, "
            f"{ENV_OPENROUTER_API_KEY}, or {ENV_LLM_API_BASE_URL}"
        )


def build_messages(prompt: str, system_instruction: str | None = None) -> list[dict]:
    """Chat-completions message list, with the system message first when given."""
    messages = []
    if system_instruction:
        messages.append({"role": "system", "content": system_instruction})
    messages.append({"role": "user", "content": prompt})
    return messages


# =============================================================================
# MAIN LLM CALLING FUNCTION
# =============================================================================
def call_llm(prompt: str, use_cache: bool = True, system_instruction: str | None = None) -> str:
    """
    Send one prompt to the configured provider and return the response text.

    Args:
        prompt: The prompt to send to the LLM
        use_cache: Whether to use caching (default: True).
                   Nodes pass False on retries to get a fresh response.
        system_instruction: Optional system message sent before the prompt

    Returns:
        str: The LLM response text (never empty)

    Raises:
        InputValidationError: No provider configured
        GeneratorError: The backend failed or returned nothing
    """
    start_time = time.time()

    if system_instruction:
        logger.info(f"SYSTEM: {system_instruction}")
    logger.info(f"PROMPT: {prompt}")

    key = cache_key(prompt, system_instruction)
    if use_cache:
        cache = load_cache()
        if key in cache:
            logger.info("CACHE HIT: Using cached response")
            print(f"  💾 Cache HIT")
            return cache[key]

    provider = get_llm_provider()
    print(f"  ☁️  {provider}...", end=" ", flush=True)

    # IMPORTANT: This order must match the priority in get_llm_provider()!
    try:
        if provider == LLM_PROVIDER_OPENAI:
            response_text = _call_llm_openai(prompt, system_instruction)
        elif provider == LLM_PROVIDER_GEMINI:
            response_text = _call_llm_gemini(prompt, system_instruction)
        elif provider == LLM_PROVIDER_OPENROUTER:
            response_text = _call_llm_openrouter(prompt, system_instruction)
        else:  # GENERIC - OpenAI-compatible API
            response_text = _call_llm_generic(prompt, system_instruction)
    except GeneratorError as e:
        logger.error(f"LLM call failed ({provider}): {e}")
        print("✗")
        raise

    if not response_text or not response_text.strip():
        logger.error(f"LLM returned empty content ({provider})")
        print("✗")
        raise GeneratorError(f"{provider} returned an empty response")

    elapsed = time.time() - start_time
    if elapsed >= 60:
        time_str = f"{elapsed/60:.1f}m"
    else:
        time_str = f"{elapsed:.1f}s"

    logger.info(f"RESPONSE: {response_text}")
    print(f"✓ {len(response_text):,} chars ({time_str})")

    if use_cache:
        cache = load_cache()
        cache[key] = response_text
        save_cache(cache)

    return response_text


# =============================================================================
# PROVIDER-SPECIFIC IMPLEMENTATIONS
# =============================================================================

def _first_choice_content(payload: dict, source: str) -> str:
    """Content of the first choice in a chat-completions JSON payload."""
    choices = payload.get("choices") or []
    if not choices:
        raise GeneratorError(f"No response choices returned from {source}")
    message = choices[0].get("message") or {}
    return message.get("content") or ""


def _call_llm_openai(prompt: str, system_instruction: str | None = None) -> str:
    """
    Call OpenAI API directly using the official SDK.

    Environment variables:
    - OPENAI_API_KEY: Required - your OpenAI API key
    - OPENAI_MODEL: Optional - model to use (default: gpt-4o)
    """
    from openai import OpenAI, OpenAIError

    model = os.getenv(ENV_OPENAI_MODEL, DEFAULT_OPENAI_MODEL)
    try:
        client = OpenAI(api_key=os.getenv(ENV_OPENAI_API_KEY))
        response = client.chat.completions.create(
            model=model,
            messages=build_messages(prompt, system_instruction),
            temperature=DEFAULT_TEMPERATURE,
        )
    except OpenAIError as e:
        raise GeneratorError(f"OpenAI API error: {e}") from e

    if not response.choices:
        raise GeneratorError("No response choices returned from OpenAI")
    return response.choices[0].message.content or ""


def _call_llm_gemini(prompt: str, system_instruction: str | None = None) -> str:
    """
    Call Google Gemini API.

    Supports two modes:
    1. API Key mode (GEMINI_API_KEY) - Simpler, recommended
    2. Vertex AI mode (GEMINI_PROJECT_ID) - Requires ADC setup

    IMPORTANT: API key is checked FIRST to avoid Vertex AI ADC issues!
    """
    from google import genai
    from google.genai import errors as genai_errors
    from google.genai import types as genai_types

    try:
        if os.getenv(ENV_GEMINI_API_KEY):
            client = genai.Client(api_key=os.getenv(ENV_GEMINI_API_KEY))
        else:
            # Vertex AI mode - requires Application Default Credentials
            client = genai.Client(
                vertexai=True,
                project=os.getenv(ENV_GEMINI_PROJECT_ID),
                location=os.getenv(ENV_GEMINI_LOCATION, DEFAULT_GEMINI_LOCATION),
            )

        config = genai_types.GenerateContentConfig(
            temperature=DEFAULT_TEMPERATURE,
            system_instruction=system_instruction,
        )
        response = client.models.generate_content(
            model=os.getenv(ENV_GEMINI_MODEL, DEFAULT_GEMINI_MODEL),
            contents=[prompt],
            config=config,
        )
    except genai_errors.APIError as e:
        raise GeneratorError(f"Gemini API error: {e}") from e

    if not response.candidates:
        raise GeneratorError("No response candidates returned from Gemini")
    return response.text or ""


def _call_llm_openrouter(prompt: str, system_instruction: str | None = None) -> str:
    """
    Call OpenRouter API - a gateway to many LLM providers.

    Environment variables:
    - OPENROUTER_API_KEY: Required - your OpenRouter API key
    - OPENROUTER_MODEL: Model to use (default: openai/gpt-4o)
    - OPENROUTER_REFERER: HTTP referer for tracking (default: https://github.com)
    - OPENROUTER_TITLE: App title for tracking
    """
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {os.getenv(ENV_OPENROUTER_API_KEY)}",
        "HTTP-Referer": os.getenv(ENV_OPENROUTER_REFERER, DEFAULT_OPENROUTER_REFERER),
        "X-Title": os.getenv(ENV_OPENROUTER_TITLE, DEFAULT_OPENROUTER_TITLE),
    }
    payload = {
        "model": os.getenv(ENV_OPENROUTER_MODEL, DEFAULT_OPENROUTER_MODEL),
        "messages": build_messages(prompt, system_instruction),
        "temperature": DEFAULT_TEMPERATURE,
    }

    try:
        response = requests.post(
            OPENROUTER_API_URL, headers=headers, json=payload, timeout=DEFAULT_REQUEST_TIMEOUT
        )
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        raise GeneratorError(f"OpenRouter API error: {e}") from e
    except ValueError as e:
        raise GeneratorError(f"OpenRouter returned invalid JSON: {e}") from e

    return _first_choice_content(data, "OpenRouter")


def _call_llm_generic(prompt: str, system_instruction: str | None = None) -> str:
    """
    Call a generic OpenAI-compatible API (Ollama, LM Studio, vLLM, ...).

    Environment variables:
    - LLM_API_BASE_URL: The base URL (default: http://localhost:11434)
    - LLM_API_KEY: Optional API key (not needed for local models)
    - LLM_MODEL: Model to use (default: llama3.2)
    """
    base_url = os.getenv(ENV_LLM_API_BASE_URL, DEFAULT_GENERIC_BASE_URL)
    api_key = os.getenv(ENV_LLM_API_KEY, "")
    url = f"{base_url.rstrip('/')}/v1/chat/completions"

    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    payload = {
        "model": os.getenv(ENV_LLM_MODEL, DEFAULT_GENERIC_MODEL),
        "messages": build_messages(prompt, system_instruction),
        "temperature": DEFAULT_TEMPERATURE,
    }

    try:
        response = requests.post(url, headers=headers, json=payload, timeout=DEFAULT_REQUEST_TIMEOUT)
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        raise GeneratorError(f"Error calling LLM API at {url}: {e}") from e
    except ValueError as e:
        raise GeneratorError(f"LLM API at {url} returned invalid JSON: {e}") from e

    return _first_choice_content(data, url)


# =============================================================================
# TEST SCRIPT
# =============================================================================
if __name__ == "__main__":
    """
    Test the LLM configuration.

    Run this file directly to verify your API key is working:
        python -m utils.call_llm
    """
    try:
        provider = get_llm_provider()
        print(f"Using LLM provider: {provider}")

        test_prompt = "Say hello in one sentence."
        print(f"Testing with prompt: {test_prompt}")

        response = call_llm(test_prompt, use_cache=False)
        print(f"Response: {response}")

    except (InputValidationError, GeneratorError) as e:
        print(f"Error: {e}")
        sys.exit(1)
