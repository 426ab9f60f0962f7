import json

import httpx
import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select

from deliverydesk.crud import order as order_crud
from deliverydesk.crud import pod as pod_crud
from deliverydesk.models import (
    DeliveryFailure,
    Notification,
    Order,
    OrderUpdate,
    PodPhoto,
    ProofOfDelivery,
    ShopifyConnection,
)
from deliverydesk.schemas.pod import CompletionData, FailureData, PhotoEntry
from deliverydesk.services.pod import (
    AuthorizationError,
    CriticalPersistenceError,
    InvalidOrderStateError,
    PodReconciler,
    ValidationError,
)


def completion(*urls, name="Jane", **extra):
    return CompletionData(customer_name=name, photos=[PhotoEntry(url=u) for u in urls], **extra)


async def rows(session_factory, model, **where):
    async with session_factory() as session:
        query = select(model)
        for column, value in where.items():
            query = query.where(getattr(model, column) == value)
        result = await session.execute(query)
        return result.scalars().all()


def fail_first_call(monkeypatch, module, name):
    """Make module.name raise a database error once, then behave normally"""
    original = getattr(module, name)
    calls = []

    async def wrapper(*args, **kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            raise SQLAlchemyError("connection reset")
        return await original(*args, **kwargs)

    monkeypatch.setattr(module, name, wrapper)
    return calls


async def always_fails(*args, **kwargs):
    raise SQLAlchemyError("connection reset")


class BrokenSink:
    async def send(self, user_id, title, message, kind="success"):
        raise RuntimeError("notification store down")

    async def user_name(self, user_id):
        return "Driver"


@pytest.mark.asyncio
async def test_complete_order_delivers(db, session_factory, driver, admin, make_order, fetch):
    order = await make_order()

    result = await PodReconciler(db, session_factory).complete_order(
        order.id, driver.id, completion("https://cdn.example.com/1.jpg", "https://cdn.example.com/2.jpg", notes="Front desk"),
    )

    assert result.success is True
    assert result.order.status == "delivered"
    assert result.pod.photos_processed == 2
    assert result.pod.photos_total == 2
    assert result.fulfillment_updated is False
    assert result.fulfillment_result is None
    assert result.notifications_sent == 2

    stored = await fetch(Order, order.id)
    assert stored.status == "delivered"
    assert stored.completed_at is not None
    assert json.loads(stored.photo_url) == ["https://cdn.example.com/1.jpg", "https://cdn.example.com/2.jpg"]

    pods = await rows(session_factory, ProofOfDelivery, order_id=order.id)
    assert len(pods) == 1
    assert pods[0].recipient_name == "Jane"
    assert pods[0].delivery_notes == "Front desk"

    photos = await rows(session_factory, PodPhoto, pod_id=pods[0].id)
    assert sorted(p.position for p in photos) == [0, 1]

    audit = await rows(session_factory, OrderUpdate, order_id=order.id)
    assert len(audit) == 1
    assert audit[0].notes.startswith("PROOF OF DELIVERY COMPLETED")
    assert f"POD ID: {pods[0].id}" in audit[0].notes

    creator_notes = await rows(session_factory, Notification, user_id=admin.id)
    assert creator_notes[0].title == "Order Delivered"
    assert "Dana Driver" in creator_notes[0].message
    driver_notes = await rows(session_factory, Notification, user_id=driver.id)
    assert driver_notes[0].title == "Delivery Completed"


@pytest.mark.asyncio
async def test_photos_without_url_are_skipped(db, session_factory, driver, make_order):
    order = await make_order()

    result = await PodReconciler(db, session_factory).complete_order(
        order.id, driver.id, completion("https://a", "", None),
    )

    assert result.pod.photos_processed == 1
    assert result.pod.photos_total == 3
    assert result.photo_failures == []
    assert len(await rows(session_factory, PodPhoto, pod_id=result.pod.id)) == 1


@pytest.mark.asyncio
async def test_photo_insert_failure_is_counted_not_raised(db, session_factory, driver, make_order, monkeypatch, fetch):
    order = await make_order()
    original = pod_crud.create_pod_photo

    async def flaky(session, **fields):
        if fields["photo_url"] == "https://broken":
            raise SQLAlchemyError("disk full")
        return await original(session, **fields)

    monkeypatch.setattr(pod_crud, "create_pod_photo", flaky)

    result = await PodReconciler(db, session_factory).complete_order(
        order.id, driver.id, completion("https://a", "https://broken", "https://c"),
    )

    assert result.success is True
    assert result.pod.photos_processed == 2
    assert result.pod.photos_total == 3
    assert [f.index for f in result.photo_failures] == [1]
    assert "disk full" in result.photo_failures[0].reason

    stored = await fetch(Order, order.id)
    assert stored.status == "delivered"
    assert json.loads(stored.photo_url) == ["https://a", "https://c"]


@pytest.mark.asyncio
async def test_order_of_another_driver_is_rejected_without_writes(db, session_factory, other_driver, make_order, fetch):
    order = await make_order()

    with pytest.raises(AuthorizationError):
        await PodReconciler(db, session_factory).complete_order(order.id, other_driver.id, completion("https://a"))

    assert await rows(session_factory, ProofOfDelivery, order_id=order.id) == []
    assert await rows(session_factory, OrderUpdate, order_id=order.id) == []
    assert (await fetch(Order, order.id)).status == "in_transit"


@pytest.mark.asyncio
async def test_unknown_order_is_rejected(db, session_factory, driver):
    with pytest.raises(AuthorizationError):
        await PodReconciler(db, session_factory).complete_order("no-such-order", driver.id, completion("https://a"))


@pytest.mark.asyncio
async def test_order_not_in_transit_is_rejected(db, session_factory, driver, make_order):
    order = await make_order(status="assigned")

    with pytest.raises(InvalidOrderStateError):
        await PodReconciler(db, session_factory).complete_order(order.id, driver.id, completion("https://a"))

    assert await rows(session_factory, ProofOfDelivery, order_id=order.id) == []


@pytest.mark.asyncio
async def test_missing_photo_is_rejected_before_writes(db, session_factory, driver, make_order):
    order = await make_order()

    with pytest.raises(ValidationError):
        await PodReconciler(db, session_factory).complete_order(order.id, driver.id, completion())

    assert await rows(session_factory, ProofOfDelivery, order_id=order.id) == []


@pytest.mark.asyncio
async def test_repeat_completion_replays_original(db, session_factory, driver, make_order):
    order = await make_order()
    reconciler = PodReconciler(db, session_factory)

    first = await reconciler.complete_order(order.id, driver.id, completion("https://a"))
    second = await reconciler.complete_order(order.id, driver.id, completion("https://b", "https://c"))

    assert second.duplicate is True
    assert second.pod.id == first.pod.id
    assert second.pod.photos_processed == 1
    assert len(await rows(session_factory, ProofOfDelivery, order_id=order.id)) == 1


@pytest.mark.asyncio
async def test_fulfillment_success_is_stored(db, session_factory, driver, make_order, shop, http_client, shopify_calls, fetch):
    order = await make_order(shopify_connection_id=shop.id, shopify_order_id="820982911946154508")

    result = await PodReconciler(db, session_factory, http_client=http_client).complete_order(
        order.id, driver.id, completion("https://a"),
    )

    assert result.fulfillment_updated is True
    assert result.fulfillment_result.fulfillment_id == "555001"

    assert len(shopify_calls) == 1
    request = shopify_calls[0]
    assert request.headers["X-Shopify-Access-Token"] == "shpat_test"
    assert request.url.path.endswith("/orders/820982911946154508/fulfillments.json")
    assert json.loads(request.content)["fulfillment"]["tracking_number"] == "DEL-1001"

    stored = await fetch(Order, order.id)
    assert stored.shopify_fulfillment_id == "555001"
    assert stored.shopify_fulfilled_at is not None


@pytest.mark.asyncio
async def test_fulfillment_error_still_delivers(db, session_factory, driver, make_order, shop, shopify_transport, fetch):
    order = await make_order(shopify_connection_id=shop.id, shopify_order_id="42")
    transport = shopify_transport(status_code=422, json={"errors": "Order is already fulfilled"})

    async with httpx.AsyncClient(transport=transport) as client:
        result = await PodReconciler(db, session_factory, http_client=client).complete_order(
            order.id, driver.id, completion("https://a"),
        )

    assert result.success is True
    assert result.order.status == "delivered"
    assert result.fulfillment_updated is False
    assert "422" in result.fulfillment_result.error

    stored = await fetch(Order, order.id)
    assert stored.status == "delivered"
    assert stored.shopify_fulfillment_id is None


@pytest.mark.asyncio
async def test_inactive_store_skips_fulfillment(db, session_factory, driver, make_order, shop, http_client, shopify_calls):
    async with session_factory() as session:
        connection = await session.get(ShopifyConnection, shop.id)
        connection.is_active = False
        await session.commit()
    order = await make_order(shopify_connection_id=shop.id, shopify_order_id="42")

    result = await PodReconciler(db, session_factory, http_client=http_client).complete_order(
        order.id, driver.id, completion("https://a"),
    )

    assert result.fulfillment_result is None
    assert shopify_calls == []


@pytest.mark.asyncio
async def test_notification_failure_is_not_fatal(db, session_factory, driver, make_order, fetch):
    order = await make_order()

    result = await PodReconciler(db, session_factory, notifications=BrokenSink()).complete_order(
        order.id, driver.id, completion("https://a"),
    )

    assert result.success is True
    assert result.notifications_sent == 0
    assert (await fetch(Order, order.id)).status == "delivered"


@pytest.mark.asyncio
async def test_submit_failure(db, session_factory, driver, admin, make_order, fetch):
    order = await make_order(status="out_for_delivery")
    data = FailureData(
        failure_reason="Customer not home",
        attempted_delivery=True,
        contacted_customer=True,
        photos=[PhotoEntry(url="https://door"), PhotoEntry(url="")],
    )

    result = await PodReconciler(db, session_factory).submit_failure(order.id, driver.id, data)

    assert result.order.status == "failed"
    assert result.photos_total == 1
    assert result.notifications_sent == 2

    stored = await fetch(Order, order.id)
    assert stored.status == "failed"
    assert stored.photo_url is None

    failures = await rows(session_factory, DeliveryFailure, order_id=order.id)
    assert len(failures) == 1
    assert json.loads(failures[0].photos) == ["https://door"]
    assert failures[0].attempted_delivery is True

    audit = await rows(session_factory, OrderUpdate, order_id=order.id)
    assert audit[0].notes.startswith("DELIVERY FAILED")

    creator_notes = await rows(session_factory, Notification, user_id=admin.id)
    assert creator_notes[0].type == "warning"


@pytest.mark.asyncio
async def test_submit_failure_requires_reason(db, session_factory, driver, make_order):
    order = await make_order()

    with pytest.raises(ValidationError):
        await PodReconciler(db, session_factory).submit_failure(order.id, driver.id, FailureData())


@pytest.mark.asyncio
async def test_repeat_failure_replays_original(db, session_factory, driver, make_order):
    order = await make_order()
    reconciler = PodReconciler(db, session_factory)
    data = FailureData(failure_reason="Wrong address")

    first = await reconciler.submit_failure(order.id, driver.id, data)
    second = await reconciler.submit_failure(order.id, driver.id, data)

    assert second.duplicate is True
    assert second.failure_id == first.failure_id


@pytest.mark.asyncio
async def test_pod_insert_failure_aborts(db, session_factory, driver, make_order, monkeypatch, fetch):
    order = await make_order()
    monkeypatch.setattr(pod_crud, "create_pod", always_fails)

    with pytest.raises(CriticalPersistenceError) as exc_info:
        await PodReconciler(db, session_factory).complete_order(order.id, driver.id, completion("https://a"))

    assert exc_info.value.pod_id is None
    assert await rows(session_factory, ProofOfDelivery, order_id=order.id) == []
    assert await rows(session_factory, PodPhoto) == []
    assert (await fetch(Order, order.id)).status == "in_transit"


@pytest.mark.asyncio
async def test_order_update_failure_reports_orphan_pod(db, session_factory, driver, make_order, monkeypatch, fetch):
    order = await make_order()
    monkeypatch.setattr(order_crud, "update_order", always_fails)

    with pytest.raises(CriticalPersistenceError) as exc_info:
        await PodReconciler(db, session_factory).complete_order(order.id, driver.id, completion("https://a"))

    pods = await rows(session_factory, ProofOfDelivery, order_id=order.id)
    assert [p.id for p in pods] == [exc_info.value.pod_id]
    assert (await fetch(Order, order.id)).status == "in_transit"
    assert await rows(session_factory, OrderUpdate, order_id=order.id) == []


@pytest.mark.asyncio
async def test_retry_after_order_update_failure_finishes_delivery(db, session_factory, driver, make_order, monkeypatch, fetch):
    order = await make_order()
    fail_first_call(monkeypatch, order_crud, "update_order")
    payload = completion("https://a", "https://b", notes="Side door")

    with pytest.raises(CriticalPersistenceError) as exc_info:
        await PodReconciler(db, session_factory).complete_order(order.id, driver.id, payload)

    async with session_factory() as session:
        result = await PodReconciler(session, session_factory).complete_order(order.id, driver.id, payload)

    assert result.success is True
    assert result.duplicate is False
    assert result.order.status == "delivered"
    assert result.pod.id == exc_info.value.pod_id
    assert result.pod.photos_processed == 2

    stored = await fetch(Order, order.id)
    assert stored.status == "delivered"
    assert json.loads(stored.photo_url) == ["https://a", "https://b"]
    assert len(await rows(session_factory, ProofOfDelivery, order_id=order.id)) == 1
    assert len(await rows(session_factory, PodPhoto, pod_id=result.pod.id)) == 2

    audit = await rows(session_factory, OrderUpdate, order_id=order.id)
    assert len(audit) == 1
    assert "Notes: Side door" in audit[0].notes


@pytest.mark.asyncio
async def test_concurrent_insert_of_existing_pod_finishes_delivery(db, session_factory, driver, make_order, monkeypatch, fetch):
    order = await make_order()
    fail_first_call(monkeypatch, order_crud, "update_order")
    with pytest.raises(CriticalPersistenceError):
        await PodReconciler(db, session_factory).complete_order(order.id, driver.id, completion("https://a"))

    # the lookup misses once, as when another request commits in between
    original_lookup = pod_crud.get_pod_by_order
    lookups = []

    async def late_lookup(session, order_id):
        lookups.append(order_id)
        if len(lookups) == 1:
            return None
        return await original_lookup(session, order_id)

    monkeypatch.setattr(pod_crud, "get_pod_by_order", late_lookup)

    async with session_factory() as session:
        result = await PodReconciler(session, session_factory).complete_order(
            order.id, driver.id, completion("https://a"),
        )

    assert result.order.status == "delivered"
    assert result.duplicate is False
    assert (await fetch(Order, order.id)).status == "delivered"
    assert len(await rows(session_factory, ProofOfDelivery, order_id=order.id)) == 1


@pytest.mark.asyncio
async def test_pod_on_closed_order_is_an_error(db, session_factory, driver, make_order):
    order = await make_order(status="cancelled")
    async with session_factory() as session:
        pod = ProofOfDelivery(order_id=order.id, driver_id=driver.id, recipient_name="Jane")
        session.add(pod)
        await session.commit()

    with pytest.raises(CriticalPersistenceError) as exc_info:
        await PodReconciler(db, session_factory).complete_order(order.id, driver.id, completion("https://a"))

    assert exc_info.value.pod_id == pod.id


@pytest.mark.asyncio
async def test_audit_failure_is_not_fatal(db, session_factory, driver, make_order, monkeypatch, fetch):
    order = await make_order()
    monkeypatch.setattr(order_crud, "add_order_update", always_fails)

    result = await PodReconciler(db, session_factory).complete_order(order.id, driver.id, completion("https://a"))

    assert result.success is True
    assert result.notifications_sent == 2
    assert (await fetch(Order, order.id)).status == "delivered"
    assert await rows(session_factory, OrderUpdate, order_id=order.id) == []


@pytest.mark.asyncio
async def test_retry_after_failure_status_error_marks_failed(db, session_factory, driver, make_order, monkeypatch, fetch):
    order = await make_order()
    fail_first_call(monkeypatch, order_crud, "update_order")
    data = FailureData(failure_reason="Dog in yard", attempted_delivery=True, photos=[PhotoEntry(url="https://gate")])

    with pytest.raises(CriticalPersistenceError):
        await PodReconciler(db, session_factory).submit_failure(order.id, driver.id, data)

    async with session_factory() as session:
        result = await PodReconciler(session, session_factory).submit_failure(order.id, driver.id, data)

    assert result.duplicate is False
    assert result.order.status == "failed"
    assert result.photos_total == 1
    assert (await fetch(Order, order.id)).status == "failed"
    assert len(await rows(session_factory, DeliveryFailure, order_id=order.id)) == 1

    audit = await rows(session_factory, OrderUpdate, order_id=order.id)
    assert len(audit) == 1
    assert "Reason: Dog in yard" in audit[0].notes
    assert "Attempted delivery: yes" in audit[0].notes
