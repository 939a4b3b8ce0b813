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

from decimal import Decimal

from shared.types import Tier

# Prices are in INR.
TIER_PRICES = {
    Tier.FREE: Decimal("0"),
    Tier.SINGLE: Decimal("50"),
    Tier.DOUBLE: Decimal("100"),
    Tier.BULK: Decimal("480"),
}

TIER_POEM_COUNTS = {
    Tier.FREE: 1,
    Tier.SINGLE: 1,
    Tier.DOUBLE: 2,
    Tier.BULK: 5,
}

LOWEST_PAID_TIER = Tier.SINGLE

WINNER_POSITIONS = (1, 2, 3)
MAX_SCORE = 100
MAX_PENDING_WALL_POSTS = 5

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
POEM_FILE_CONTENT_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)
PHOTO_CONTENT_TYPE_PREFIX = "image/"

MAX_POEM_TITLE_LENGTH = 255
MAX_CONTACT_MESSAGE_LENGTH = 5000
MAX_WALL_POST_LENGTH = 5000

# Admin setting keys.
FREE_TIER_ENABLED = "free_tier_enabled"
FREE_TIER_RESET_TIMESTAMP = "free_tier_reset_timestamp"
CONTEST_LAUNCH_DATE = "contest_launch_date"
SUBMISSION_DEADLINE = "submission_deadline"
RESULT_ANNOUNCEMENT_DATE = "result_announcement_date"

DEFAULT_SETTINGS = {
    FREE_TIER_ENABLED: "true",
}

EDITABLE_SETTINGS = (
    FREE_TIER_ENABLED,
    CONTEST_LAUNCH_DATE,
    SUBMISSION_DEADLINE,
    RESULT_ANNOUNCEMENT_DATE,
)


def validate_tier_poem_count(tier: str, poem_count: int) -> bool:
    try:
        expected = TIER_POEM_COUNTS[Tier(tier)]
    except ValueError:
        return False
    return poem_count == expected
