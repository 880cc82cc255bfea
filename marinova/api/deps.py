"""
Request-scoped service wiring.

Tests swap the store or the generation provider through
`app.dependency_overrides[get_store]` / `[get_generation_provider]`.
"""
from functools import lru_cache

from fastapi import Depends
from starlette.concurrency import run_in_threadpool

from marinova.core.auth import Identity, authenticate
from marinova.core.logging import bind_user_id
from marinova.features.charging.service import ChargingService
from marinova.features.credits.service import CreditService
from marinova.features.generation.groq_provider import GroqGenerationProvider
from marinova.features.generation.provider import GenerationProvider
from marinova.features.generation.service import GenerationService
from marinova.features.ledger.store import LedgerStore, get_ledger_store
from marinova.features.subscriptions.service import SubscriptionService
from marinova.features.users.service import UserService


def get_store() -> LedgerStore:
    return get_ledger_store()


@lru_cache(maxsize=1)
def get_generation_provider() -> GenerationProvider:
    return GroqGenerationProvider()


def get_credit_service(store: LedgerStore = Depends(get_store)) -> CreditService:
    return CreditService(store)


def get_charging_service(credits: CreditService = Depends(get_credit_service)) -> ChargingService:
    return ChargingService(credits)


def get_subscription_service(store: LedgerStore = Depends(get_store)) -> SubscriptionService:
    return SubscriptionService(store)


def get_user_service(store: LedgerStore = Depends(get_store)) -> UserService:
    return UserService(store)


def get_generation_service(provider: GenerationProvider = Depends(get_generation_provider)) -> GenerationService:
    return GenerationService(provider)


async def get_current_user_id(
    identity: Identity = Depends(authenticate),
    users: UserService = Depends(get_user_service),
) -> str:
    """Authenticated user id; the first contact creates a free-tier ledger."""
    await run_in_threadpool(users.get_or_create_ledger, identity.user_id, is_email_verified=identity.email_verified)
    # Set in the request task; threadpool calls for the endpoint inherit it
    bind_user_id(identity.user_id)
    return identity.user_id
