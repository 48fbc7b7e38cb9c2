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

# Credits
INITIAL_CREDITS = 100
PLAN_GENERATION_COST = 50
CONTRACT_SIGNING_REWARD = 200
DEFAULT_PACKAGE_PUBLISH_COST = 50

PLAN_GENERATION_REMARK = "Travel plan generation"
PACKAGE_PUBLISH_REMARK = "Travel package publishing"
PACKAGE_PUBLISH_REFUND_REMARK = "Travel package publishing refund"
CONTRACT_SIGNING_REMARK = "Offline contract signing reward"
ADMIN_GRANT_REMARK = "Admin top-up"
INFO_FEE_REMARK = "Info fee"
ENTERPRISE_INFO_FEE_REMARK = "Enterprise group info fee"

# System settings defaults (row id 1)
SYSTEM_SETTINGS_ID = 1
DEFAULT_COMMISSION_RATE = 0.05
DEFAULT_MAX_PACKAGES_PER_AGENT = 10

# Plan generation
PLAN_PLACEHOLDER_TEXT = (
    "Your itinerary is being generated. This usually takes 10-120 seconds; "
    "check back under My Plans."
)
PLAN_MIN_TEXT_LENGTH = 10
PLAN_MAX_DAYS = 30
PLAN_PREFERENCE_OPTIONS = (
    "Food",
    "Culture",
    "Shopping",
    "Nature",
    "History",
    "Theme parks",
    "Leisure",
    "Outdoors",
)

# Lengths
MAX_TITLE_LENGTH = 120
MAX_NAME_LENGTH = 64
MAX_BIO_LENGTH = 500
MAX_MESSAGE_LENGTH = 2000
MAX_COMMENT_LENGTH = 1000
MAX_REQUIREMENTS_LENGTH = 2000

# Uploads
DEFAULT_ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png")
DEFAULT_MAX_UPLOAD_MB = 5
SIGNED_URL_EXPIRES_SECONDS = 3600

AVATARS_BUCKET = "avatars"
ID_CARDS_BUCKET = "id-cards"
LICENSES_BUCKET = "licenses"
PACKAGE_IMAGES_BUCKET = "package-images"

# Payments
PAYMENT_SESSION_TTL_SECONDS = 15 * 60
SUCCESS_TRADE_STATUSES = ("TRADE_SUCCESS", "TRADE_FINISHED")
DEFAULT_ALIPAY_TRADE_NO = "manual_process"
