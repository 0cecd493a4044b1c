# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import time
import logging
from google import genai
from google.genai import types
from models import api_config

logger = logging.getLogger(__name__)

API_KEY_LOGGING_MESSAGE = "Ran with user-specified API key"
CHAT_TEMPERATURE = 0.2
CHAT_MAX_OUTPUT_TOKENS = 800


class GeminiInvalidResponseException(Exception):
    pass


class GeminiMissingApiKeyException(Exception):
    pass


def call_predict(
    query: str,
    model: str = api_config.DEFAULT_MODEL,
    api_key: str | None = None,
    temperature: float = CHAT_TEMPERATURE,
    max_output_tokens: int = CHAT_MAX_OUTPUT_TOKENS,
) -> str:
    """
    Calls Gemini with a plain text prompt and returns the response text.

    Raises:
        GeminiMissingApiKeyException: If no key was given and none is configured.
        GeminiInvalidResponseException: If the model returned no text.
    """
    if not api_key:
        api_key = api_config.DEFAULT_API_KEY
    else:
        logger.info(API_KEY_LOGGING_MESSAGE)
    if not api_key:
        raise GeminiMissingApiKeyException()

    client = genai.Client(api_key=api_key)

    start_time = time.time()
    truncated_query = (query[:200] + "...") if len(query) > 200 else query
    logger.debug("Calling Gemini model %s, prompt: '%s'", model, truncated_query)
    response = client.models.generate_content(
        model=model,
        contents=query,
        config=types.GenerateContentConfig(
            temperature=temperature, max_output_tokens=max_output_tokens
        ),
    )
    logger.info("Gemini call took: %.2fs", time.time() - start_time)
    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text
