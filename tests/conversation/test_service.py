import pytest

from relay.conversation import (
    ConversationRelay,
    MessageSubmitter,
    ResponseExtractor,
    RunOrchestrator,
    ThreadProvisioner,
)
from relay.conversation.outcome import EXPIRED_MESSAGE, GENERIC_ERROR_MESSAGE
from relay.conversation.service import WELCOME_MESSAGES
from relay.errors import ConfigurationMissing
from relay.storage import RedisSessionBackend, SessionStore


@pytest.fixture
def build(settings_factory, assistants_client, whatsapp_sender, fake_redis, recording_sleep):
    def _build(**overrides) -> ConversationRelay:
        config = settings_factory(**overrides)
        store = SessionStore(RedisSessionBackend(fake_redis), ttl_seconds=config.session_ttl_seconds)
        return ConversationRelay(
            config=config,
            provisioner=ThreadProvisioner(store, assistants_client),
            submitter=MessageSubmitter(assistants_client),
            orchestrator=RunOrchestrator(assistants_client, sleep=recording_sleep),
            extractor=ResponseExtractor(assistants_client),
            sender=whatsapp_sender,
            sleep=recording_sleep,
        )

    return _build


@pytest.mark.asyncio
async def test_first_message_scenario(build, assistants_api, whatsapp_api, fake_redis):
    assistants_api.thread_ids = ["th_abc"]
    assistants_api.poll_script = ["in_progress", "completed"]
    assistants_api.reply = "Olá! Como posso ajudar?"

    reply = await build().handle_message("5511999999999", "Oi")

    assert reply == "Olá! Como posso ajudar?"
    assert fake_redis.ttls["relay:session:5511999999999"] == 12 * 60 * 60
    assert assistants_api.count("GET", "run") == 2
    assert whatsapp_api.texts == [*WELCOME_MESSAGES, "Olá! Como posso ajudar?"]
    assert {m["to"] for m in whatsapp_api.sent} == {"5511999999999"}
    assert whatsapp_api.sent[0]["path"] == "/v18.0/123456/messages"
    assert whatsapp_api.sent[0]["authorization"] == "Bearer wa-token"


@pytest.mark.asyncio
async def test_follow_up_reuses_thread_without_welcome(build, assistants_api, whatsapp_api):
    relay = build()
    await relay.handle_message("u1", "Oi")
    whatsapp_api.sent.clear()

    await relay.handle_message("u1", "Tudo bem?")

    assert assistants_api.count("POST", "threads") == 1
    assert len(whatsapp_api.sent) == 1
    user_texts = [
        m["content"][0]["text"]["value"]
        for m in assistants_api.threads["th_1"]
        if m["role"] == "user"
    ]
    assert user_texts == ["Oi", "Tudo bem?"]


@pytest.mark.asyncio
async def test_welcome_messages_are_spaced(build, recording_sleep):
    await build(welcome_message_delay_seconds=0.5).handle_message("u1", "Oi")
    assert recording_sleep.calls[0] == 0.5


@pytest.mark.asyncio
async def test_budget_exhaustion_scenario(build, assistants_api, whatsapp_api):
    assistants_api.poll_script = ["in_progress"]

    reply = await build().handle_message("u1", "Oi")

    assert assistants_api.count("GET", "run") == 15
    assert reply != EXPIRED_MESSAGE
    assert "não foi possível obter a resposta a tempo" in reply
    assert whatsapp_api.texts[-1] == reply


@pytest.mark.asyncio
async def test_failed_run_reports_code(build, assistants_api):
    assistants_api.poll_script = [
        {"status": "failed", "last_error": {"code": "server_error", "message": "boom"}}
    ]
    reply = await build().handle_message("u1", "Oi")
    assert "server_error" in reply


@pytest.mark.asyncio
async def test_completed_without_reply_uses_fallback(build, assistants_api):
    assistants_api.reply = None
    reply = await build().handle_message("u1", "Oi")
    assert reply.startswith("Desculpe, ocorreu um problema")


@pytest.mark.asyncio
async def test_thread_creation_failure_sends_single_apology(build, assistants_api, whatsapp_api):
    assistants_api.create_thread_error = 503

    reply = await build().handle_message("u1", "Oi")

    assert reply == GENERIC_ERROR_MESSAGE
    assert whatsapp_api.texts == [GENERIC_ERROR_MESSAGE]
    assert assistants_api.count("POST", "runs") == 0


@pytest.mark.asyncio
async def test_session_store_outage_sends_apology(build, assistants_api, whatsapp_api, fake_redis):
    fake_redis.down = True

    reply = await build().handle_message("u1", "Oi")

    assert reply == GENERIC_ERROR_MESSAGE
    assert assistants_api.requests == []
    assert whatsapp_api.texts == [GENERIC_ERROR_MESSAGE]


@pytest.mark.asyncio
async def test_missing_configuration_aborts_before_backend_calls(
    build, assistants_api, whatsapp_api
):
    relay = build(openai_assistant_id=None)

    with pytest.raises(ConfigurationMissing) as excinfo:
        await relay.handle_message("u1", "Oi")

    assert excinfo.value.missing == ["OPENAI_ASSISTANT_ID"]
    assert assistants_api.requests == []
    assert whatsapp_api.sent == []


@pytest.mark.asyncio
async def test_delivery_failure_does_not_raise(build, whatsapp_api):
    whatsapp_api.fail_with = 401
    reply = await build().handle_message("u1", "Oi")
    assert reply == "Resposta do assistente"


@pytest.mark.asyncio
async def test_undecodable_session_starts_a_new_conversation(
    build, assistants_api, whatsapp_api, fake_redis
):
    fake_redis._data["relay:session:u1"] = b"\xff\xfe"

    reply = await build().handle_message("u1", "Oi")

    assert reply == "Resposta do assistente"
    assert assistants_api.count("POST", "threads") == 1
    assert whatsapp_api.texts == [*WELCOME_MESSAGES, "Resposta do assistente"]


@pytest.mark.asyncio
async def test_unexpected_error_sends_single_apology(build, assistants_api, whatsapp_api):
    relay = build()

    async def broken_submit(thread_id, text):
        raise RuntimeError("unexpected")

    relay._submitter.submit = broken_submit

    reply = await relay.handle_message("u1", "Oi")

    assert reply == GENERIC_ERROR_MESSAGE
    assert whatsapp_api.texts == [*WELCOME_MESSAGES, GENERIC_ERROR_MESSAGE]
    assert assistants_api.count("POST", "runs") == 0
