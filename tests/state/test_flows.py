import asyncio

from chat_widget.core import constants
from chat_widget.models import chat as chat_models

from conftest import StubCatalog, StubTransport

Option = chat_models.DefaultOption


def test_claim_info_prompt_arrives_after_delay(make_session, clock):
    session = make_session()
    session.select_option(Option.CLAIM_INFO)
    assert session.context is chat_models.ConversationContext.CLAIM_INFO
    assert len(session.messages) == 1
    assert session.is_typing

    clock.advance(0.49)
    assert len(session.messages) == 1

    clock.advance(0.01)
    assert len(session.messages) == 2
    prompt = session.messages[-1]
    assert prompt.sender == "bot"
    assert prompt.content == "Please provide your Claim Number."
    assert session.is_typing is False

    clock.advance(5.0)
    assert len(session.messages) == 2


def test_scripted_prompts_per_option(make_session, clock):
    expected = {
        Option.POLICY_INFO: (chat_models.ConversationContext.POLICY_INFO, constants.POLICY_NUMBER_PROMPT),
        Option.SUBMIT_CLAIM: (chat_models.ConversationContext.CLAIM_SUBMISSION, constants.CLAIM_SUBMISSION_PROMPT),
    }
    for option, (context, prompt) in expected.items():
        session = make_session()
        session.select_option(option)
        clock.advance(1.0)
        assert session.context is context
        assert session.messages[-1].content == prompt


def test_new_option_cancels_pending_prompt(make_session, clock):
    session = make_session()
    session.select_option(Option.CLAIM_INFO)
    session.select_option(Option.POLICY_INFO)
    clock.advance(1.0)
    prompts = [m.content for m in session.messages[1:]]
    assert prompts == [constants.POLICY_NUMBER_PROMPT]
    assert session.is_typing is False


def test_submit_claim_round_trip_enables_attachments(make_session, clock):
    transport = StubTransport(
        chat_models.ChatResponse(
            response="Please upload your medical documents.",
            query_stage=chat_models.QueryStage(type="CLAIM_SUBMISSION", stage="DocumentsRequired"),
        )
    )
    session = make_session(transport=transport)
    session.select_option(Option.SUBMIT_CLAIM)
    clock.advance(1.0)
    session.set_input("Fractured wrist, policy POL-9")
    session.send()
    assert transport.sent[0].context is chat_models.ConversationContext.CLAIM_SUBMISSION
    assert session.attachment_enabled is True


def test_product_info_loads_segments(make_session):
    catalog = StubCatalog(segments=["A", "B"], products={"A": [chat_models.Product("Alpha", "A-1")]})
    session = make_session(catalog=catalog)
    session.select_option(Option.PRODUCT_INFO)
    chat_state = session.state.value
    assert chat_state.context is chat_models.ConversationContext.PRODUCT_INFO
    assert chat_state.pending_segments == ("A", "B")
    assert chat_state.messages[-1].flags.show_segments is True
    assert chat_state.is_typing is False

    session.select_segment("A")
    chat_state = session.state.value
    user_message = chat_state.messages[-2]
    assert user_message.sender == "user"
    assert user_message.content == "A"
    assert chat_state.pending_segments is None
    assert ("products", "A") in catalog.calls
    assert chat_state.messages[-1].flags.has_products is True
    assert chat_state.pending_products == (chat_models.Product("Alpha", "A-1"),)


def test_product_selection_appends_detail(make_session):
    catalog = StubCatalog()
    session = make_session(catalog=catalog)
    session.select_option(Option.PRODUCT_INFO)
    session.select_segment("Health")
    session.select_product(chat_models.Product("Family Floater", "HF-01"))

    chat_state = session.state.value
    assert [m.content for m in chat_state.messages[-2:]] == [
        "Family Floater",
        "Family Floater covers the whole family.",
    ]
    assert chat_state.messages[-2].sender == "user"
    assert chat_state.pending_products is None
    assert chat_state.is_typing is False


def test_segment_fetch_failure_reports_notice(make_session):
    catalog = StubCatalog()
    catalog.failures.add("segments")
    session = make_session(catalog=catalog)
    session.select_option(Option.PRODUCT_INFO)
    chat_state = session.state.value
    assert chat_state.messages[-1].content == constants.SEGMENTS_FAILED
    assert chat_state.messages[-1].flags.is_error
    assert chat_state.pending_segments is None
    assert chat_state.is_typing is False


def test_product_list_failure_reports_notice(make_session):
    catalog = StubCatalog()
    catalog.failures.add("products:Motor")
    session = make_session(catalog=catalog)
    session.select_option(Option.PRODUCT_INFO)
    session.select_segment("Motor")
    chat_state = session.state.value
    assert chat_state.messages[-1].content == constants.PRODUCTS_FAILED
    assert chat_state.pending_products is None
    assert chat_state.pending_segments is None
    assert chat_state.is_typing is False


def test_product_detail_failure_clears_products(make_session):
    catalog = StubCatalog()
    catalog.failures.add("detail:SC-02")
    session = make_session(catalog=catalog)
    session.select_option(Option.PRODUCT_INFO)
    session.select_segment("Health")
    session.select_product("SC-02")
    chat_state = session.state.value
    assert chat_state.messages[-1].content == constants.PRODUCT_DETAIL_FAILED
    assert chat_state.pending_products is None
    assert chat_state.is_typing is False


def test_product_info_without_catalog_degrades_to_notice(make_session):
    session = make_session(catalog=None)
    session.select_option(Option.PRODUCT_INFO)
    assert session.messages[-1].content == constants.SEGMENTS_FAILED
    assert session.is_typing is False


def test_unknown_segment_is_ignored(make_session, logger):
    session = make_session(catalog=StubCatalog())
    session.select_option(Option.PRODUCT_INFO)
    before = len(session.messages)
    assert session.select_segment("Travel") is None
    assert len(session.messages) == before
    assert "flow.segment.ignored" in logger.names()


def test_new_option_discards_stale_segments(make_session, clock):
    session = make_session(catalog=StubCatalog())
    session.select_option(Option.PRODUCT_INFO)
    assert session.state.value.pending_segments is not None
    session.select_option(Option.POLICY_INFO)
    assert session.state.value.pending_segments is None
    assert session.context is chat_models.ConversationContext.POLICY_INFO


def test_late_segment_result_loses_to_newer_branch(make_session, clock):
    catalog = StubCatalog()
    session = make_session(catalog=catalog)

    async def scenario():
        catalog.gates["segments"] = asyncio.Event()
        first = session.select_option(Option.PRODUCT_INFO)
        session.select_option(Option.CLAIM_INFO)
        catalog.gates["segments"].set()
        await first

    asyncio.run(scenario())
    assert session.state.value.pending_segments is None
    clock.advance(1.0)
    chat_state = session.state.value
    assert chat_state.messages[-1].content == constants.CLAIM_NUMBER_PROMPT
    assert chat_state.is_typing is False


def test_later_product_selection_wins(make_session):
    catalog = StubCatalog()
    session = make_session(catalog=catalog)

    async def scenario():
        await session.select_option(Option.PRODUCT_INFO)
        await session.select_segment("Health")
        catalog.gates["detail:HF-01"] = asyncio.Event()
        first = session.select_product("HF-01")
        second = session.select_product("SC-02")
        await second
        catalog.gates["detail:HF-01"].set()
        await first

    asyncio.run(scenario())
    chat_state = session.state.value
    contents = [m.content for m in chat_state.messages]
    assert contents[-1] == "Senior Care."
    assert "Family Floater covers the whole family." not in contents
    assert chat_state.pending_products is None
    assert chat_state.is_typing is False


def test_clear_chat_drops_pending_selection(make_session):
    session = make_session(catalog=StubCatalog())
    session.select_option(Option.PRODUCT_INFO)
    session.clear_chat()
    chat_state = session.state.value
    assert chat_state.pending_segments is None
    assert chat_state.context is chat_models.ConversationContext.DEFAULT
    assert len(chat_state.messages) == 1


def test_flow_messages_raise_unread_when_closed(make_session, clock):
    session = make_session()
    session.select_option(Option.CLAIM_INFO)
    clock.advance(1.0)
    assert session.state.value.has_new_message is True
