import asyncio
import threading

import httpx
import pytest

from fakes import OTHER_OWNER_ID, OWNER_ID, TEST_API_KEY, make_provider_config
from generation_service.exceptions import ConfigurationMissingError, ProviderConfigNotFoundError, ProviderRejectedError
from generation_service.models import AIProviderConfig
from generation_service.schemas.provider_configs import AIProvider, ProviderConfigRead, ProviderConfigUpdate
from generation_service.security import SecretCipher
from generation_service.services.provider_configs import ProviderConfigService


def _defaults(db, owner_id=OWNER_ID):
    return [
        config.id
        for config in db.query(AIProviderConfig).filter_by(owner_id=owner_id, is_default=True).all()
    ]


def test_first_config_becomes_default(provider_config_service, db):
    first = make_provider_config(provider_config_service, db)
    second = make_provider_config(provider_config_service, db, name="Backup")

    assert first.is_default is True
    assert second.is_default is False
    assert provider_config_service.resolve(db, OWNER_ID).id == first.id


def test_new_default_replaces_the_old_one(provider_config_service, db):
    first = make_provider_config(provider_config_service, db)
    second = make_provider_config(provider_config_service, db, name="Backup", is_default=True)

    db.refresh(first)
    assert first.is_default is False
    assert _defaults(db) == [second.id]


def test_set_default_keeps_a_single_default(provider_config_service, db):
    first = make_provider_config(provider_config_service, db)
    second = make_provider_config(provider_config_service, db, name="Backup")

    provider_config_service.set_default(db, OWNER_ID, second.id)

    assert _defaults(db) == [second.id]
    db.refresh(first)
    assert first.is_default is False


def test_defaults_are_per_owner(provider_config_service, db):
    mine = make_provider_config(provider_config_service, db)
    theirs = make_provider_config(provider_config_service, db, owner_id=OTHER_OWNER_ID)

    assert _defaults(db) == [mine.id]
    assert _defaults(db, OTHER_OWNER_ID) == [theirs.id]


def test_deleting_the_default_promotes_another(provider_config_service, db):
    first = make_provider_config(provider_config_service, db)
    second = make_provider_config(provider_config_service, db, name="Backup")

    provider_config_service.delete(db, OWNER_ID, first.id)

    assert _defaults(db) == [second.id]


def test_deactivating_clears_default(provider_config_service, db):
    config = make_provider_config(provider_config_service, db)

    provider_config_service.update(db, OWNER_ID, config.id, ProviderConfigUpdate(is_active=False))

    with pytest.raises(ConfigurationMissingError):
        provider_config_service.resolve(db, OWNER_ID)
    with pytest.raises(ProviderConfigNotFoundError):
        provider_config_service.resolve(db, OWNER_ID, config.id)


def test_deactivating_the_default_promotes_another(provider_config_service, db):
    first = make_provider_config(provider_config_service, db)
    second = make_provider_config(provider_config_service, db, name="Backup")

    provider_config_service.update(db, OWNER_ID, first.id, ProviderConfigUpdate(is_active=False))

    assert _defaults(db) == [second.id]
    assert provider_config_service.resolve(db, OWNER_ID).id == second.id


def test_unsetting_the_default_promotes_another(provider_config_service, db):
    first = make_provider_config(provider_config_service, db)
    second = make_provider_config(provider_config_service, db, name="Backup")

    provider_config_service.update(db, OWNER_ID, first.id, ProviderConfigUpdate(is_default=False))

    assert _defaults(db) == [second.id]


def test_only_active_config_keeps_default(provider_config_service, db):
    config = make_provider_config(provider_config_service, db)

    updated = provider_config_service.update(db, OWNER_ID, config.id, ProviderConfigUpdate(is_default=False))

    assert updated.is_default is True
    assert provider_config_service.resolve(db, OWNER_ID).id == config.id


def test_resolve_without_any_config(provider_config_service, db):
    with pytest.raises(ConfigurationMissingError):
        provider_config_service.resolve(db, OWNER_ID)


def test_other_owners_config_is_not_found(provider_config_service, db):
    theirs = make_provider_config(provider_config_service, db, owner_id=OTHER_OWNER_ID)

    with pytest.raises(ProviderConfigNotFoundError):
        provider_config_service.get(db, OWNER_ID, theirs.id)
    with pytest.raises(ProviderConfigNotFoundError):
        provider_config_service.resolve(db, OWNER_ID, theirs.id)


def test_api_key_is_encrypted_and_never_read_back(provider_config_service, db):
    config = make_provider_config(provider_config_service, db)

    assert config.encrypted_secret != TEST_API_KEY
    assert TEST_API_KEY not in config.encrypted_secret
    assert TEST_API_KEY not in ProviderConfigRead.model_validate(config).model_dump_json()
    assert provider_config_service.load_credentials(config).api_key == TEST_API_KEY


def test_updating_api_key_re_encrypts(provider_config_service, db):
    config = make_provider_config(provider_config_service, db)

    updated = provider_config_service.update(db, OWNER_ID, config.id, ProviderConfigUpdate(api_key="sk-rotated-key"))

    assert provider_config_service.load_credentials(updated).api_key == "sk-rotated-key"


def test_unreadable_secret_is_a_rejected_provider(provider_config_service, db):
    config = make_provider_config(provider_config_service, db)
    other_cipher = ProviderConfigService(SecretCipher("a-different-passphrase"), timeout_seconds=5)

    with pytest.raises(ProviderRejectedError):
        other_cipher.load_credentials(config)


def _service_with(cipher, handler) -> ProviderConfigService:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ProviderConfigService(cipher, timeout_seconds=5, http_client=http_client)


def test_connection_test_success(cipher, db):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == f"Bearer {TEST_API_KEY}"
        return httpx.Response(200, json={"choices": [{"message": {"content": "OK"}}]})

    service = _service_with(cipher, handler)
    config = make_provider_config(service, db, max_tokens=1000)

    result = asyncio.run(service.test_connection(db, OWNER_ID, config.id))

    assert result.status == "success"
    assert result.message == "Connection successful"
    assert result.model_info.name == "gpt-4o-mini"
    assert result.model_info.max_tokens == 1000
    assert result.response_time_ms >= 0


def test_connection_test_failure_reports_safe_message(cipher, db):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"code": "invalid_api_key", "message": f"bad key {TEST_API_KEY}"}})

    service = _service_with(cipher, handler)
    config = make_provider_config(service, db, provider=AIProvider.TONGYI)

    result = asyncio.run(service.test_connection(db, OWNER_ID, config.id))

    assert result.status == "failed"
    assert result.message == ProviderRejectedError.user_message
    assert TEST_API_KEY not in result.message
    assert result.model_info.name == "qwen-turbo"


def test_connection_test_reads_config_off_the_event_loop(cipher, db, monkeypatch):
    service = _service_with(cipher, lambda request: _chat_ok())
    config = make_provider_config(service, db)
    lookup_threads = []
    original_get = service.get

    def recording_get(*args):
        lookup_threads.append(threading.get_ident())
        return original_get(*args)

    monkeypatch.setattr(service, "get", recording_get)

    async def scenario():
        return threading.get_ident(), await service.test_connection(db, OWNER_ID, config.id)

    loop_thread, result = asyncio.run(scenario())

    assert result.status == "success"
    assert len(lookup_threads) == 1
    assert lookup_threads[0] != loop_thread


def test_connection_test_for_other_owner_is_not_found(cipher, db):
    service = _service_with(cipher, lambda request: _chat_ok())
    theirs = make_provider_config(service, db, owner_id=OTHER_OWNER_ID)

    with pytest.raises(ProviderConfigNotFoundError):
        asyncio.run(service.test_connection(db, OWNER_ID, theirs.id))


def _chat_ok() -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": "OK"}}]})
