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


import argparse
import logging

from tripmarket.config import get_settings
from tripmarket.errors import ConflictError, UpstreamError
from tripmarket.rest import SupabaseAuthClient

logger = logging.getLogger(__name__)

# Creates confirmed accounts test1@qq.com .. testN@qq.com for manual QA.


def create_test_users(auth_client: SupabaseAuthClient, count: int, password: str, domain: str) -> int:
    """
    Creates `count` confirmed users. Returns how many were created; failures
    are logged and the loop moves on to the next address.
    """
    created = 0
    for i in range(1, count + 1):
        email = f"test{i}@{domain}"
        try:
            auth_client.create_user(email, password, confirm=True)
        except (ConflictError, UpstreamError) as exc:
            logger.error("Creating %s failed: %s", email, exc.message)
            continue
        logger.info("Created %s", email)
        created += 1
    return created


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create confirmed test users.")
    parser.add_argument("--count", type=int, default=10, help="Number of users to create.")
    parser.add_argument("--password", default="123456", help="Password for every test user.")
    parser.add_argument("--domain", default="qq.com", help="Email domain for the test users.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        parser.error("TRIPMARKET_SUPABASE_URL and TRIPMARKET_SUPABASE_SERVICE_KEY must be set")

    auth_client = SupabaseAuthClient(
        settings.supabase_url,
        settings.supabase_service_key,
        timeout=settings.request_timeout_seconds,
    )
    created = create_test_users(auth_client, args.count, args.password, args.domain)
    logger.info("Done: %d/%d users created", created, args.count)


if __name__ == "__main__":
    main()
