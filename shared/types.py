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

from enum import Enum


class UserRole(Enum):
    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"


class PackageStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class OrderStatus(Enum):
    PENDING = "pending"
    CONTACTED = "contacted"
    REJECTED = "rejected"


class ContractStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class EnterpriseOrderStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ApplicationStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PlanStatus(Enum):
    QUEUED = "queued"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionType(Enum):
    CONSUME = "consume"
    PURCHASE = "purchase"
    GRANT = "grant"


class MessageType(Enum):
    DIRECT = "direct"
    SYSTEM = "system"


class BannerType(Enum):
    TRAVEL = "travel"
    NORMAL = "normal"
    ENTERPRISE = "enterprise"


# Allowed order status changes. Terminal states map to an empty set.
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONTACTED, OrderStatus.REJECTED},
    OrderStatus.CONTACTED: set(),
    OrderStatus.REJECTED: set(),
}

ENTERPRISE_TRANSITIONS = {
    EnterpriseOrderStatus.PENDING: {
        EnterpriseOrderStatus.APPROVED,
        EnterpriseOrderStatus.REJECTED,
    },
    EnterpriseOrderStatus.APPROVED: {EnterpriseOrderStatus.COMPLETED},
    EnterpriseOrderStatus.REJECTED: set(),
    EnterpriseOrderStatus.COMPLETED: set(),
}

PACKAGE_TRANSITIONS = {
    PackageStatus.PENDING: {
        PackageStatus.APPROVED,
        PackageStatus.REJECTED,
        PackageStatus.ARCHIVED,
    },
    PackageStatus.APPROVED: {PackageStatus.REJECTED, PackageStatus.ARCHIVED},
    PackageStatus.REJECTED: {PackageStatus.APPROVED, PackageStatus.ARCHIVED},
    PackageStatus.ARCHIVED: {PackageStatus.APPROVED},
}
