"""
test_engine.py - Sync passes, admin actions, submission and retry-queue replay.

Each test drives a fully wired AppContext against a fake workflow endpoint.
"""

import asyncio

import pytest

from po_sync.errors import NotFoundError

from conftest import build_po


def run(context, scenario):
    async def wrapper():
        async with context as ctx:
            return await scenario(ctx)
    return asyncio.run(wrapper())


class TestSyncPass:
    def test_failed_delivery_then_resend(self, context, endpoint, po_data):
        async def scenario(ctx):
            endpoint.default_status = 500
            submitted = await ctx.engine.submit(po_data)
            assert submitted.success
            assert submitted.synced is False
            assert len(ctx.store.get_pending()) == 1

            endpoint.default_status = 200
            result = await ctx.engine.resend(submitted.submission_id)
            assert result.success
            sub = ctx.store.get_by_id(submitted.submission_id)
            assert sub.sent is True
            assert sub.sent_at

        run(context, scenario)

    def test_one_failure_does_not_stop_the_pass(self, context, endpoint, po_data):
        async def scenario(ctx):
            ids = [ctx.store.save(po_data) for _ in range(3)]
            endpoint.statuses = [200, 500, 200]

            result = await ctx.engine.push_pending()
            assert (result.attempted, result.sent, result.failed) == (3, 2, 1)
            assert [s.id for s in ctx.store.get_pending()] == [ids[1]]
            assert ids[1] in result.failures

            retry = await ctx.engine.push_pending()
            assert (retry.attempted, retry.sent) == (1, 1)

        run(context, scenario)

    def test_second_pass_is_a_noop(self, context, endpoint, po_data):
        async def scenario(ctx):
            ctx.store.save(po_data)
            await ctx.engine.push_pending()
            requests_after_first = len(endpoint.requests)

            result = await ctx.engine.push_pending()
            assert result.attempted == 0
            assert len(endpoint.requests) == requests_after_first

        run(context, scenario)

    def test_offline_pass_sends_nothing(self, context, endpoint, po_data):
        async def scenario(ctx):
            ctx.store.save(po_data)
            ctx.network.set_online(False)

            result = await ctx.engine.push_pending()
            assert result.skipped == "offline"
            assert endpoint.requests == []
            assert len(ctx.store.get_pending()) == 1

        run(context, scenario)

    def test_payload_is_shaped(self, context, endpoint, po_data):
        async def scenario(ctx):
            sub_id = ctx.store.save(po_data)
            await ctx.engine.push_pending()
            payload = endpoint.payloads[0]
            assert payload["id"] == sub_id
            assert payload["schedule"][0]["totalCost"] == 50
            assert payload["schedule"][0]["profit"] == -10
            assert payload["meta"]["contractAmount"] == 125000

        run(context, scenario)

    def test_observers_see_each_pass(self, context, po_data):
        seen = []

        async def scenario(ctx):
            ctx.engine.add_observer(seen.append)
            ctx.store.save(po_data)
            await ctx.engine.push_pending()
            ctx.engine.remove_observer(seen.append)
            await ctx.engine.push_pending()

        run(context, scenario)
        assert len(seen) == 1
        assert seen[0].sent == 1

    def test_observer_errors_do_not_break_the_pass(self, context, po_data):
        def broken(result):
            raise RuntimeError("render failed")

        async def scenario(ctx):
            ctx.engine.add_observer(broken)
            ctx.store.save(po_data)
            return await ctx.engine.push_pending()

        assert run(context, scenario).sent == 1

    def test_overlapping_passes_deliver_each_submission_once(self, context, endpoint):
        async def scenario(ctx):
            ids = [ctx.store.save(build_po(projectName=f"Job {n}")) for n in range(3)]

            first, second = await asyncio.gather(ctx.engine.push_pending(), ctx.engine.push_pending())

            assert ctx.store.get_pending() == []
            assert first.sent + second.sent == 3
            assert first.failed == second.failed == 0
            sent_at = {sub_id: ctx.store.get_by_id(sub_id).sent_at for sub_id in ids}
            assert all(sent_at.values())
            assert not any(ctx.store.mark_sent(sub_id) for sub_id in ids)
            assert {sub_id: ctx.store.get_by_id(sub_id).sent_at for sub_id in ids} == sent_at

        run(context, scenario)


class TestBadRemoteConfig:
    def test_non_ascii_api_key_fails_each_submission(self, context, endpoint):
        async def scenario(ctx):
            for n in range(2):
                ctx.store.save(build_po(projectName=f"Job {n}"))
            ctx.update_remote_config(api_key="clé-secrète")

            result = await ctx.engine.push_pending()
            assert (result.attempted, result.sent, result.failed) == (2, 0, 2)
            assert len(ctx.store.get_pending()) == 2
            assert endpoint.requests == []

        run(context, scenario)

    def test_malformed_endpoint_queues_create(self, context, endpoint, po_data):
        async def scenario(ctx):
            ctx.update_remote_config(endpoint="http://[::1")

            result = await ctx.service.create_po(po_data)
            assert result["success"]
            assert result["syncStatus"] == "queued"
            assert result["po"]["sent"] is False
            assert len(ctx.retry_queue) == 1

        run(context, scenario)


class TestSubmit:
    def test_invalid_submission_persists_nothing(self, context, endpoint):
        async def scenario(ctx):
            result = await ctx.engine.submit({"meta": {"projectName": "Only a name"}})
            assert not result.success
            assert "meta.email is required" in result.errors
            assert ctx.store.count() == 0
            assert endpoint.requests == []

        run(context, scenario)

    def test_valid_submission_is_delivered(self, context, endpoint, po_data):
        async def scenario(ctx):
            ctx.settings.save_draft(po_data)
            result = await ctx.engine.submit(po_data)
            assert result.success and result.synced
            assert ctx.store.get_by_id(result.submission_id).sent is True
            assert ctx.settings.load_draft() is None
            assert len(endpoint.requests) == 1

        run(context, scenario)

    def test_offline_submission_stays_pending(self, context, endpoint, po_data):
        async def scenario(ctx):
            ctx.network.set_online(False)
            result = await ctx.engine.submit(po_data)
            assert result.success
            assert not result.synced
            assert endpoint.requests == []

            ctx.network.set_online(True)
            await ctx.engine.push_pending()
            assert ctx.store.get_pending() == []

        run(context, scenario)


class TestAdminActions:
    def test_resend_unknown_id(self, context):
        async def scenario(ctx):
            with pytest.raises(NotFoundError):
                await ctx.engine.resend(999)

        run(context, scenario)

    def test_resend_already_sent_posts_again(self, context, endpoint, po_data):
        async def scenario(ctx):
            sub_id = ctx.store.save(po_data)
            ctx.store.mark_sent(sub_id)
            sent_at = ctx.store.get_by_id(sub_id).sent_at

            result = await ctx.engine.resend(sub_id)
            assert result.success
            assert len(endpoint.requests) == 1
            assert ctx.store.get_by_id(sub_id).sent_at == sent_at

        run(context, scenario)

    def test_bulk_resend_and_delete(self, context, endpoint):
        async def scenario(ctx):
            ids = [ctx.store.save(build_po(projectName=f"Job {n}")) for n in range(3)]
            endpoint.statuses = [200, 500]

            assert await ctx.engine.resend_many(ids[:2] + [999]) == 1
            assert await ctx.engine.delete_many([ids[0], ids[2], 999]) == 2
            assert [s.id for s in ctx.store.get_all()] == [ids[1]]

        run(context, scenario)

    def test_test_post(self, context, endpoint):
        async def scenario(ctx):
            result = await ctx.engine.test_post()
            assert result.success
            assert endpoint.payloads[0]["source"] == "admin_test"

        run(context, scenario)


class TestRetryQueueReplay:
    def test_replay_delivers_and_marks_sent(self, context, endpoint, po_data):
        async def scenario(ctx):
            endpoint.default_status = 500
            created = await ctx.service.create_po(po_data)
            assert created["syncStatus"] == "queued"
            assert len(ctx.retry_queue) == 1
            po_id = created["po"]["id"]

            endpoint.default_status = 200
            assert await ctx.engine.process_retry_queue() == 1
            assert len(ctx.retry_queue) == 0
            assert ctx.store.get_by_id(po_id).sent is True

        run(context, scenario)

    def test_gives_up_after_retry_attempts(self, context, endpoint):
        async def scenario(ctx):
            endpoint.default_status = 500
            ctx.retry_queue.add("DELETE_PO", {"id": 1})

            assert await ctx.engine.process_retry_queue() == 0
            assert ctx.retry_queue.entries()[0].attempts == 1
            assert await ctx.engine.process_retry_queue() == 0
            assert await ctx.engine.process_retry_queue() == 1
            assert len(ctx.retry_queue) == 0
            assert len(endpoint.requests) == 3
            assert endpoint.payloads[0]["action"] == "DELETE_PO"

        run(context, scenario)

    def test_enqueue_failed_persists_entry(self, context):
        async def scenario(ctx):
            await ctx.engine.enqueue_failed("UPDATE_PO", {"id": 4})
            entries = ctx.retry_queue.entries()
            assert [(e.action, e.data) for e in entries] == [("UPDATE_PO", {"id": 4})]

        run(context, scenario)

    def test_offline_replay_is_skipped(self, context, endpoint):
        async def scenario(ctx):
            ctx.retry_queue.add("DELETE_PO", {"id": 1})
            ctx.network.set_online(False)
            assert await ctx.engine.process_retry_queue() == 0
            assert len(ctx.retry_queue) == 1
            assert endpoint.requests == []

        run(context, scenario)
