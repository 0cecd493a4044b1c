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

# Market prices
COMMODITY_MIN_LENGTH = 3
PRICE_WARNING_THRESHOLD = 1_000_000

# Articles and tips
TITLE_MIN_LENGTH = 5
TITLE_MAX_LENGTH = 500
CONTENT_MIN_LENGTH = 20
ARTICLE_CONTENT_MAX_LENGTH = 50_000
TIP_CONTENT_MAX_LENGTH = 10_000
DEFAULT_TIP_CATEGORY = "general"

# Plantings
SEED_TYPE_MIN_LENGTH = 3

# Chat
MAX_CHAT_MESSAGE_LENGTH = 2000
CHAT_MAX_KEYWORDS = 6
CHAT_MIN_KEYWORD_LENGTH = 4
CHAT_RESULTS_PER_KEYWORD = 3
CHAT_ARTICLE_SUMMARY_LENGTH = 500
CHAT_TIP_CONTENT_LENGTH = 400
CHAT_MAX_CONTEXT_ARTICLES = 8
CHAT_MAX_CONTEXT_TIPS = 12
CHAT_PROMPT_ITEM_LENGTH = 300
LOCAL_MODEL_NAME = "local-knowledge-base"

# Storage
IMAGE_UPLOAD_PREFIX = "articles"

# Dashboard
DEFAULT_DASHBOARD_LIMIT = 6
