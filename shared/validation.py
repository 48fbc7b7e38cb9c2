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


import re
import uuid
from datetime import date
from typing import Iterable, Optional

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Mainland China mobile numbers.
PHONE_PATTERN = re.compile(r"^1[3-9]\d{9}$")
ID_CARD_PATTERN = re.compile(r"^\d{17}[\dXx]$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_valid_uuid(value: Optional[str]) -> bool:
    if not value:
        return False
    return bool(UUID_PATTERN.match(value))


def is_valid_email(value: Optional[str]) -> bool:
    if not value:
        return False
    return bool(EMAIL_PATTERN.match(value))


def is_valid_phone(value: Optional[str]) -> bool:
    if not value:
        return False
    return bool(PHONE_PATTERN.match(value))


def is_valid_id_card(value: Optional[str]) -> bool:
    if not value:
        return False
    return bool(ID_CARD_PATTERN.match(value))


def is_valid_date(value: Optional[str]) -> bool:
    """Checks for a YYYY-MM-DD calendar date."""
    if not value or not DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def normalize_phone(value: str) -> str:
    """Strips everything but digits, and a leading +86 country code."""
    digits = re.sub(r"\D", "", value or "")
    if len(digits) == 13 and digits.startswith("86"):
        digits = digits[2:]
    return digits


def check_upload(
    content_type: Optional[str],
    size: int,
    allowed_types: Iterable[str],
    max_size_mb: float,
) -> Optional[str]:
    """
    Returns an error message if the upload is not acceptable, else None.
    """
    allowed = tuple(allowed_types)
    if content_type not in allowed:
        readable = " / ".join(t.split("/")[-1].upper() for t in allowed)
        return f"Only {readable} files are supported"
    if size > max_size_mb * 1024 * 1024:
        return f"File size cannot exceed {max_size_mb:g}MB"
    return None


def new_id() -> str:
    return str(uuid.uuid4())
