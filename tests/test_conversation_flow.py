import asyncio

import pytest

from reporta import messages
from reporta.models import ReportStatus
from reporta.sessions import Step

from helpers import FlakyRepository, TULUM, image, location, run_full_flow, text

REPORTER = "5219841234567"


async def pending_reports(repository):
    return await repository.list_by_status(ReportStatus.pending.value)


@pytest.mark.asyncio
async def test_full_flow_creates_one_pending_report(engine, repository, notifier):
    step = await run_full_flow(engine, REPORTER)

    assert step == Step.INITIAL
    reports = await pending_reports(repository)
    assert len(reports) == 1
    report = reports[0]
    assert report.status == ReportStatus.pending.value
    assert report.priority == 8
    assert report.severity == 4
    assert (report.lat, report.lon) == TULUM
    assert report.category == "Calles y Carreteras 🚗"
    assert report.subcategory == "Hoyo en la calle"
    assert report.description == "hoyo grande"
    assert report.landmark == "frente a tienda"
    assert report.photo_urls == ["https://cdn.test/media-1.jpg"]

    # Session is fresh again
    assert engine.store.get(REPORTER).answers == {}


@pytest.mark.asyncio
async def test_submission_sends_edit_link_and_moderator_alert(engine, notifier, settings):
    await run_full_flow(engine, REPORTER)

    confirmation = notifier.last_for(REPORTER)
    assert "Gracias por tu reporte" in confirmation
    assert f"{settings.public_base_url}/e/" in confirmation

    alerts = notifier.texts_for(settings.admin_phone)
    assert len(alerts) == 1
    assert "Nuevo reporte pendiente" in alerts[0]
    assert settings.moderation_panel_url in alerts[0]


@pytest.mark.asyncio
async def test_greeting_shows_category_menu(engine, notifier):
    step = await engine.handle(text(REPORTER, "hola"))

    assert step == Step.AWAITING_CATEGORY
    menu = notifier.last_for(REPORTER)
    assert menu.startswith("Hola 👋")
    # Catch-all category is listed last
    assert menu.index("7. ") < menu.index("0. ")


@pytest.mark.asyncio
async def test_invalid_category_reprompts(engine, notifier):
    await engine.handle(text(REPORTER, "hola"))
    step = await engine.handle(text(REPORTER, "42"))

    assert step == Step.AWAITING_CATEGORY
    assert "Elige un número válido" in notifier.last_for(REPORTER)


@pytest.mark.asyncio
async def test_other_category_skips_subcategory(engine, notifier):
    await engine.handle(text(REPORTER, "hola"))
    step = await engine.handle(text(REPORTER, "0"))

    assert step == Step.AWAITING_PHOTO
    session = engine.store.get(REPORTER)
    assert session.answers["category"] == "Otro tipo de problema"
    assert session.answers["subcategory"] == "Otro tipo de problema"
    assert notifier.last_for(REPORTER) == messages.PHOTO_PROMPT


@pytest.mark.asyncio
async def test_subcategory_zero_selects_other_label(engine):
    await engine.handle(text(REPORTER, "hola"))
    await engine.handle(text(REPORTER, "3"))
    step = await engine.handle(text(REPORTER, "0"))

    assert step == Step.AWAITING_PHOTO
    assert engine.store.get(REPORTER).answers["subcategory"] == "Otro problema"


@pytest.mark.asyncio
async def test_invalid_subcategory_keeps_step(engine, notifier):
    await engine.handle(text(REPORTER, "hola"))
    await engine.handle(text(REPORTER, "1"))
    step = await engine.handle(text(REPORTER, "9"))

    assert step == Step.AWAITING_SUBCATEGORY
    assert notifier.last_for(REPORTER) == messages.SUBCATEGORY_INVALID


async def advance_to(engine, step_name):
    events = [
        (Step.AWAITING_CATEGORY, text(REPORTER, "hola")),
        (Step.AWAITING_SUBCATEGORY, text(REPORTER, "1")),
        (Step.AWAITING_PHOTO, text(REPORTER, "1")),
        (Step.AWAITING_DESCRIPTION, image(REPORTER)),
        (Step.AWAITING_LOCATION, text(REPORTER, "hoyo grande")),
        (Step.AWAITING_LANDMARK, text(REPORTER, "20.2,-87.4")),
        (Step.AWAITING_SEVERITY, text(REPORTER, "frente a tienda")),
    ]
    for target, event in events:
        reached = await engine.handle(event)
        assert reached == target
        if target == step_name:
            return
    raise AssertionError(f"unknown step {step_name}")


@pytest.mark.asyncio
async def test_text_instead_of_photo_is_rejected(engine, notifier, media):
    await advance_to(engine, Step.AWAITING_PHOTO)
    step = await engine.handle(text(REPORTER, "no tengo foto"))

    assert step == Step.AWAITING_PHOTO
    assert notifier.last_for(REPORTER) == messages.PHOTO_REQUIRED
    assert media.calls == []


@pytest.mark.asyncio
async def test_media_failure_keeps_step_and_allows_retry(engine, notifier, media):
    await advance_to(engine, Step.AWAITING_PHOTO)
    media.fail = True

    step = await engine.handle(image(REPORTER))
    assert step == Step.AWAITING_PHOTO
    assert notifier.last_for(REPORTER) == messages.PHOTO_FAILED
    assert "photo_urls" not in engine.store.get(REPORTER).answers

    media.fail = False
    step = await engine.handle(image(REPORTER, media_id="media-2"))
    assert step == Step.AWAITING_DESCRIPTION
    assert engine.store.get(REPORTER).answers["photo_urls"] == ["https://cdn.test/media-2.jpg"]


@pytest.mark.asyncio
async def test_empty_description_is_rejected(engine, notifier):
    await advance_to(engine, Step.AWAITING_DESCRIPTION)
    step = await engine.handle(text(REPORTER, "   "))

    assert step == Step.AWAITING_DESCRIPTION
    assert notifier.last_for(REPORTER) == messages.DESCRIPTION_REQUIRED


@pytest.mark.asyncio
async def test_out_of_region_coordinates_keep_location_step(engine, notifier, geocoder):
    await advance_to(engine, Step.AWAITING_LOCATION)
    step = await engine.handle(text(REPORTER, "20.0,-90.0"))

    assert step == Step.AWAITING_LOCATION
    assert "área de servicio" in notifier.last_for(REPORTER)
    # Coordinates are never sent to the geocoder
    assert geocoder.queries == []


@pytest.mark.asyncio
async def test_native_location_share_is_used(engine):
    await advance_to(engine, Step.AWAITING_LOCATION)
    step = await engine.handle(location(REPORTER, 20.21, -87.46, label="Av. Tulum"))

    assert step == Step.AWAITING_LANDMARK
    answers = engine.store.get(REPORTER).answers
    assert (answers["lat"], answers["lon"]) == (20.21, -87.46)
    assert answers["location_label"] == "Av. Tulum"


@pytest.mark.asyncio
async def test_native_location_outside_region_is_rejected(engine):
    await advance_to(engine, Step.AWAITING_LOCATION)
    step = await engine.handle(location(REPORTER, 19.43, -99.13))

    assert step == Step.AWAITING_LOCATION


@pytest.mark.asyncio
async def test_address_is_geocoded(engine, geocoder):
    from reporta.geo import Coordinates

    geocoder.results["Calle 4 Sur, La Veleta"] = Coordinates(lat=20.19, lon=-87.47)
    await advance_to(engine, Step.AWAITING_LOCATION)
    step = await engine.handle(text(REPORTER, "Calle 4 Sur, La Veleta"))

    assert step == Step.AWAITING_LANDMARK
    answers = engine.store.get(REPORTER).answers
    assert (answers["lat"], answers["lon"]) == (20.19, -87.47)
    assert answers["location_label"] == "Calle 4 Sur, La Veleta"


@pytest.mark.asyncio
async def test_unknown_address_reprompts(engine, notifier, geocoder):
    await advance_to(engine, Step.AWAITING_LOCATION)
    step = await engine.handle(text(REPORTER, "Calle que no existe"))

    assert step == Step.AWAITING_LOCATION
    assert notifier.last_for(REPORTER) == messages.ADDRESS_NOT_FOUND
    assert geocoder.queries == ["Calle que no existe"]


@pytest.mark.asyncio
async def test_geocoder_failure_reprompts(engine, notifier, geocoder):
    geocoder.fail = True
    await advance_to(engine, Step.AWAITING_LOCATION)
    step = await engine.handle(text(REPORTER, "Calle 4 Sur"))

    assert step == Step.AWAITING_LOCATION
    assert notifier.last_for(REPORTER) == messages.GEOCODER_FAILED


@pytest.mark.asyncio
async def test_geocoded_result_outside_region_is_rejected(engine, geocoder):
    from reporta.geo import Coordinates

    geocoder.results["Cancún"] = Coordinates(lat=21.16, lon=-86.85)
    await advance_to(engine, Step.AWAITING_LOCATION)
    step = await engine.handle(text(REPORTER, "Cancún"))

    assert step == Step.AWAITING_LOCATION


@pytest.mark.asyncio
@pytest.mark.parametrize("answer", ["0", "6", "tres", "4.5", ""])
async def test_invalid_severity_reprompts(engine, notifier, repository, answer):
    await advance_to(engine, Step.AWAITING_SEVERITY)
    step = await engine.handle(text(REPORTER, answer))

    assert step == Step.AWAITING_SEVERITY
    assert notifier.last_for(REPORTER) == messages.SEVERITY_INVALID
    assert await pending_reports(repository) == []


@pytest.mark.asyncio
async def test_persistence_failure_keeps_session_and_retry_saves_once(engine, repository, notifier):
    flaky = FlakyRepository(repository, failures=1)
    engine._repository = flaky
    await advance_to(engine, Step.AWAITING_SEVERITY)

    step = await engine.handle(text(REPORTER, "4"))
    assert step == Step.AWAITING_SEVERITY
    assert notifier.last_for(REPORTER) == messages.SAVE_FAILED
    assert engine.store.get(REPORTER).answers["description"] == "hoyo grande"

    step = await engine.handle(text(REPORTER, "4"))
    assert step == Step.INITIAL
    assert flaky.insert_calls == 2
    assert len(await pending_reports(repository)) == 1


@pytest.mark.asyncio
async def test_repeated_final_answer_does_not_duplicate_report(engine, repository):
    await run_full_flow(engine, REPORTER)
    # A second "4" after submission starts a new conversation instead
    step = await engine.handle(text(REPORTER, "4"))

    assert step == Step.AWAITING_CATEGORY
    assert len(await pending_reports(repository)) == 1


@pytest.mark.asyncio
async def test_cancel_resets_session(engine, notifier):
    await advance_to(engine, Step.AWAITING_DESCRIPTION)
    step = await engine.handle(text(REPORTER, "Cancelar"))

    assert step == Step.INITIAL
    assert engine.store.get(REPORTER).answers == {}
    assert notifier.last_for(REPORTER) == messages.CANCELLED


@pytest.mark.asyncio
async def test_repeated_delivery_is_dropped(engine, notifier):
    await engine.handle(text(REPORTER, "hola", delivery_id="wamid.1"))
    sent_before = len(notifier.sent)

    step = await engine.handle(text(REPORTER, "hola", delivery_id="wamid.1"))

    assert step == Step.AWAITING_CATEGORY
    assert len(notifier.sent) == sent_before


@pytest.mark.asyncio
async def test_concurrent_reporters_are_isolated(engine, repository):
    reporters = [f"52198400000{i:02d}" for i in range(5)]
    await asyncio.gather(*(run_full_flow(engine, r) for r in reporters))

    reports = await pending_reports(repository)
    assert sorted(r.reporter_id for r in reports) == sorted(reporters)


@pytest.mark.asyncio
async def test_concurrent_events_for_one_reporter_are_serialized(engine):
    await engine.handle(text(REPORTER, "hola"))
    # Both answers race; the lock lets exactly one of them pick the category
    results = await asyncio.gather(
        engine.handle(text(REPORTER, "1")),
        engine.handle(text(REPORTER, "2")),
    )

    assert results[0] == Step.AWAITING_SUBCATEGORY
    session = engine.store.get(REPORTER)
    assert session.answers["category_key"] == "1"


@pytest.mark.asyncio
async def test_finished_reporters_are_not_kept_in_memory(engine):
    await run_full_flow(engine, REPORTER)
    assert len(engine.store) == 0

    await engine.handle(text(REPORTER, "hola"))
    assert len(engine.store) == 1
