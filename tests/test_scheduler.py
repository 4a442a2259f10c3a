"""
Tests for the check scheduler.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tls_cert_check import scheduler as scheduler_module
from tls_cert_check.config import Config
from tls_cert_check.emitter import SslEventEmitter
from tls_cert_check.errors import ErrorKind
from tls_cert_check.metrics import MetricsCollector
from tls_cert_check.router import Router
from tls_cert_check.scheduler import SslCheckScheduler


@pytest.fixture
def router():
    return MagicMock(spec=Router)


def make_scheduler(config, router, metrics=None):
    emitter = SslEventEmitter.from_config(config, router)
    return SslCheckScheduler(config, emitter, metrics)


class TestCheck:
    """Test one check over all targets."""

    @pytest.mark.asyncio
    async def test_unreachable_host_emits_failed_log_record(self, router):
        config = Config(hosts=["127.0.0.2:1272"], timeout=2)
        scheduler = make_scheduler(config, router)

        results = await scheduler.check()

        assert len(results) == 1
        assert router.emit.call_count == 1
        tag, _, record = router.emit.call_args.args
        assert tag == "ssl_check"
        assert record["status"] == 0
        assert record["host"] == "127.0.0.2"
        assert record["port"] == 1272
        assert record["ssl_dn"] is None
        assert record["ssl_not_after"] is None
        assert record["expire_in_days"] is None
        assert record["serial"] is None
        assert ErrorKind(record["error_class"]).level == "connection"

    @pytest.mark.asyncio
    async def test_file_certificate_metrics(self, router, server_cert):
        config = Config(
            paths=[str(server_cert.cert_path)],
            ca_file=str(server_cert.cert_path),
            log_events=False,
            metric_events=True,
        )
        scheduler = make_scheduler(config, router)

        results = await scheduler.check()

        assert results[0].status == 1
        records = [call.args[2] for call in router.emit.call_args_list]
        assert [record["metric_name"] for record in records] == ["ssl_status", "ssl_expirency"]
        assert records[0]["metric_value"] == 1

    @pytest.mark.asyncio
    async def test_targets_processed_in_order(self, router):
        config = Config(
            hosts=["127.0.0.2:1272"],
            paths=["/non-existing/certificate.pem"],
            timeout=2,
        )
        scheduler = make_scheduler(config, router)

        results = await scheduler.check()

        assert results[0].host == "127.0.0.2"
        assert results[1].path == "/non-existing/certificate.pem"
        assert results[1].error_kind == ErrorKind.FILE_NOT_FOUND.value

    @pytest.mark.asyncio
    async def test_emitter_failure_does_not_stop_check(self, router):
        router.emit.side_effect = [RuntimeError("sink down"), None]
        config = Config(paths=["/missing/a.pem", "/missing/b.pem"])
        scheduler = make_scheduler(config, router)

        results = await scheduler.check()

        assert len(results) == 2
        assert router.emit.call_count == 2

    @pytest.mark.asyncio
    async def test_probe_failure_does_not_stop_check(self, router):
        config = Config(paths=["/missing/a.pem", "/missing/b.pem"])
        scheduler = make_scheduler(config, router)
        real_probe_for = scheduler_module.probe_for
        calls = []

        def failing_first(target, cfg):
            calls.append(target)
            if len(calls) == 1:
                raise RuntimeError("probe exploded")
            return real_probe_for(target, cfg)

        with patch("tls_cert_check.scheduler.probe_for", side_effect=failing_first):
            results = await scheduler.check()

        assert len(calls) == 2
        assert len(results) == 1
        assert results[0].path == "/missing/b.pem"

    @pytest.mark.asyncio
    async def test_updates_metrics(self, router):
        metrics = MetricsCollector()
        config = Config(paths=["/missing/a.pem"])
        scheduler = make_scheduler(config, router, metrics)

        await scheduler.check()

        assert metrics.registry.get_sample_value("ssl_check_targets") == 1
        assert metrics.registry.get_sample_value("ssl_check_errors") == 1
        assert metrics.registry.get_sample_value("ssl_check_duration_seconds_count") == 1

    @pytest.mark.asyncio
    async def test_empty_targets(self, router, caplog):
        with caplog.at_level(logging.WARNING, logger="tls_cert_check"):
            scheduler = make_scheduler(Config(), router)

        assert "nothing to check" in caplog.text
        assert await scheduler.check() == []
        router.emit.assert_not_called()


class TestRunLoop:
    """Test periodic scheduling."""

    @pytest.mark.asyncio
    async def test_startup_check_for_long_interval(self, router, monkeypatch):
        monkeypatch.setattr(scheduler_module, "STARTUP_CHECK_DELAY", 0)
        scheduler = make_scheduler(Config(interval=120), router)

        with patch.object(scheduler, "check", new=AsyncMock(return_value=[])) as check:
            await scheduler.start()
            await asyncio.sleep(0.1)
            await scheduler.stop()

        assert check.await_count == 1

    @pytest.mark.asyncio
    async def test_no_startup_check_for_short_interval(self, router):
        scheduler = make_scheduler(Config(interval=30), router)

        with patch.object(scheduler, "check", new=AsyncMock(return_value=[])) as check:
            await scheduler.start()
            await asyncio.sleep(0.1)
            await scheduler.stop()

        check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_check_each_interval(self, router):
        scheduler = make_scheduler(Config(interval=1), router)

        with patch.object(scheduler, "check", new=AsyncMock(return_value=[])) as check:
            await scheduler.start()
            await asyncio.sleep(2.5)
            await scheduler.stop()

        assert check.await_count == 2

    @pytest.mark.asyncio
    async def test_loop_survives_check_error(self, router):
        scheduler = make_scheduler(Config(interval=1), router)

        with patch.object(
            scheduler, "check", new=AsyncMock(side_effect=[RuntimeError("boom"), []])
        ) as check:
            await scheduler.start()
            await asyncio.sleep(2.5)
            await scheduler.stop()

        assert check.await_count == 2

    @pytest.mark.asyncio
    async def test_start_twice(self, router, caplog):
        scheduler = make_scheduler(Config(interval=30), router)
        await scheduler.start()
        with caplog.at_level(logging.WARNING, logger="tls_cert_check"):
            await scheduler.start()
        await scheduler.stop()

        assert "already running" in caplog.text


class TestHealthStatus:
    """Test scheduler health reporting."""

    @pytest.mark.asyncio
    async def test_health_status(self, router):
        config = Config(hosts=["example.com"], paths=["/missing/a.pem"], interval=60)
        scheduler = make_scheduler(config, router)

        health = await scheduler.get_health_status()
        assert health["check_status"] == "stopped"
        assert health["check_interval"] == 60
        assert health["targets"] == ["example.com:443", "/missing/a.pem"]
        assert health["last_check_timestamp"] is None
        assert health["last_check_errors"] == 0

    @pytest.mark.asyncio
    async def test_health_status_after_check(self, router):
        config = Config(paths=["/missing/a.pem", "/missing/b.pem"])
        scheduler = make_scheduler(config, router)

        await scheduler.check()

        health = await scheduler.get_health_status()
        assert health["last_check_timestamp"] is not None
        assert health["last_check_errors"] == 2
