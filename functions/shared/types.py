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

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional


class Tier(StrEnum):
    FREE = "free"
    SINGLE = "single"
    DOUBLE = "double"
    BULK = "bulk"


class SubmissionStatus(StrEnum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    EVALUATED = "evaluated"
    REJECTED = "rejected"


class WallPostStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(StrEnum):
    GENERAL = "general"
    WINNER = "winner"
    CONTEST = "contest"
    PERSONAL = "personal"


class CouponType(StrEnum):
    FREE = "free"
    DISCOUNT = "discount"


@dataclass
class ScoreBreakdown:
    """Per-criterion marks given by an evaluator, each out of 20."""

    originality: int = 0
    emotion: int = 0
    structure: int = 0
    language: int = 0
    theme: int = 0

    def total(self) -> int:
        return (
            self.originality
            + self.emotion
            + self.structure
            + self.language
            + self.theme
        )


@dataclass
class PoemEntry:
    """One poem inside a submission."""

    title: str
    file_url: Optional[str] = None
    text: Optional[str] = None


def contest_month_for(moment: Optional[datetime] = None) -> str:
    """Returns the `YYYY-MM` key that scopes free-tier entitlement."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{moment.year}-{moment.month:02d}"
