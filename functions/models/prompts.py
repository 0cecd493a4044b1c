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

SIKUWAT_SYSTEM_PROMPT = """You are Sikuwat, an agricultural assistant for a farmer
cooperative in Indonesia. Answer questions about crop cultivation, pests and
diseases, fertilizing, irrigation, harvesting, market prices and farming
technology. Prefer the provided articles and tips when they are relevant, and
say so when you are unsure instead of guessing."""

ARTICLES_HEADER = "Context - Relevant Articles:"
TIPS_HEADER = "Context - Relevant Tips:"
QUESTION_HEADER = "User question:"
DETAILED_INSTRUCTION = (
    "Please answer in a detailed, step-by-step, practical manner in Indonesian."
)


def make_article_context_line(title: str, summary: str, url: str) -> str:
    return f"- {title}\n{summary}\n{url}"


def make_tip_context_line(title: str, content: str) -> str:
    return f"- {title}: {content}"
