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

import os

# Checked in the same order as the hosted functions read their environment.
API_KEY_ENV_VARS = ("GOOGLE_API_KEY", "GEN_API_KEY", "GEMINI_API_KEY")

DEFAULT_API_KEY = next(
    (os.environ[name] for name in API_KEY_ENV_VARS if os.environ.get(name)), None
)
DEFAULT_MODEL = "gemini-2.0-flash"
