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


import random
import re
import string
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def iso_in(seconds: float) -> str:
    return (utc_now() + timedelta(seconds=seconds)).isoformat()


def parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def random_suffix(length: int = 8) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choice(alphabet) for _ in range(length))


_EXTENSION = re.compile(r"[a-z0-9]{1,5}")


def file_extension(filename: str, default: str = "bin") -> str:
    """Lower-cased extension of filename, or default when it is not plain alphanumerics."""
    if not filename or "." not in filename:
        return default
    extension = filename.rsplit(".", 1)[-1].lower()
    return extension if _EXTENSION.fullmatch(extension) else default


def mask_phone(phone: str | None) -> str | None:
    """Keeps the first three and last four digits: 138****5678."""
    if not phone or len(phone) < 7:
        return phone
    return f"{phone[:3]}{'*' * (len(phone) - 7)}{phone[-4:]}"
