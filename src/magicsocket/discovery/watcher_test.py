import threading
from unittest import TestCase
from unittest.mock import Mock, patch

from hamcrest import assert_that, is_, instance_of, empty, contains_exactly, has_length, calling, raises
from zeroconf import ServiceInfo, Error as ZeroconfError

from magicsocket.discovery import watcher as watcher_module
from magicsocket.discovery.events import BrowseStartedEvent, BrowseStoppedEvent, BrowseFailedEvent, \
    ServiceFoundEvent, ServiceRemovedEvent, ServiceResolvedEvent, ResolveFailedEvent, TXTUpdatedEvent
from magicsocket.discovery.records import ServiceRecord, ServiceIdentity
from magicsocket.discovery.watcher import DiscoveryWatcher, BrowseListener, ServiceRefreshedEvent
from magicsocket.support.retry_strategy import NeverRetryStrategy

fqn = "_toy._tcp.local."
name = "Studio._toy._tcp.local."
key = ServiceIdentity("Studio", "toy", "local.")


def service_info(server="studio.local.", port=5000, addresses=(bytes([192, 168, 1, 5]),), text=b""):
    info = Mock()
    info.server = server
    info.port = port
    info.addresses = list(addresses)
    info.text = text
    return info


def resolved_record(hostname="studio.local", port=5000, addresses=("192.168.1.5",), txt=b""):
    return ServiceRecord("Studio", "toy", "tcp", "local.", hostname, port, addresses, txt)


class WatcherTestCase(TestCase):

    def setUp(self):
        self.zeroconf = Mock()
        self.browser = Mock()
        self.zeroconf_factory = Mock(return_value=self.zeroconf)
        self.browser_factory = Mock(return_value=self.browser)
        self.sut = DiscoveryWatcher("toy", zeroconf_factory=self.zeroconf_factory,
                                    browser_factory=self.browser_factory, log=Mock())
        self.events = []
        self.sut.listeners += self.events.append

    def session(self):
        return self.sut._session

    def fired(self):
        self.sut.update()
        events, self.events[:] = list(self.events), []
        return events


class DiscoveryWatcherStartStopTest(WatcherTestCase):

    def test_constructor(self):
        assert_that(self.sut.qualified_type, is_(fqn))
        assert_that(self.sut.domain, is_("local."))
        assert_that(self.sut.running, is_(False))
        assert_that(self.sut.records, is_({}))
        self.zeroconf_factory.assert_not_called()

    def test_start_browses(self):
        self.sut.start()
        assert_that(self.sut.running, is_(True))
        self.zeroconf_factory.assert_called_once_with()
        zc, type_, listener = self.browser_factory.call_args[0]
        assert_that(zc, is_(self.zeroconf))
        assert_that(type_, is_(fqn))
        assert_that(listener, is_(instance_of(BrowseListener)))
        assert_that(listener.session, is_(self.session()))
        assert_that(self.fired(), is_([BrowseStartedEvent(self.sut)]))

    def test_start_is_idempotent(self):
        self.sut.start()
        self.sut.start()
        self.zeroconf_factory.assert_called_once_with()
        assert_that(self.fired(), has_length(1))

    def test_start_failure(self):
        error = OSError("no interfaces")
        self.zeroconf_factory.side_effect = error
        self.sut.start()
        assert_that(self.sut.running, is_(False))
        assert_that(self.fired(), is_([BrowseFailedEvent(self.sut, error)]))

    def test_browser_failure_closes_zeroconf(self):
        error = ZeroconfError("bad type")
        self.browser_factory.side_effect = error
        self.sut.start()
        assert_that(self.sut.running, is_(False))
        self.zeroconf.close.assert_called_once_with()
        assert_that(self.fired(), is_([BrowseFailedEvent(self.sut, error)]))

    def test_start_can_be_retried_after_failure(self):
        self.zeroconf_factory.side_effect = [OSError(), self.zeroconf]
        self.sut.start()
        self.sut.start()
        assert_that(self.sut.running, is_(True))

    def test_stop_cancels_once(self):
        self.sut.start()
        self.sut.stop()
        self.sut.stop()
        self.browser.cancel.assert_called_once_with()
        self.zeroconf.close.assert_called_once_with()
        assert_that(self.sut.running, is_(False))
        assert_that(self.fired(), is_([BrowseStartedEvent(self.sut), BrowseStoppedEvent(self.sut)]))

    def test_stop_when_not_started(self):
        self.sut.stop()
        assert_that(self.fired(), is_(empty()))

    def test_stop_keeps_records(self):
        self.sut.records[key] = resolved_record()
        self.sut.start()
        self.sut.stop()
        assert_that(self.sut.records, is_({key: resolved_record()}))


class BrowseListenerTest(WatcherTestCase):

    def setUp(self):
        super().setUp()
        self.sut.start()
        self.fired()
        self.sut._resolve_in_background = Mock()
        self.listener = self.browser_factory.call_args[0][2]

    def test_add_service(self):
        self.listener.add_service(self.zeroconf, fqn, name)
        self.sut._resolve_in_background.assert_called_once_with(self.session(), self.zeroconf, fqn, name)
        unresolved = ServiceRecord("Studio", "toy", "tcp", "local.")
        assert_that(self.fired(), is_([ServiceFoundEvent(self.sut, key, unresolved)]))
        assert_that(self.sut.records, is_({key: unresolved}))

    def test_found_again_keeps_record(self):
        self.sut.records[key] = resolved_record()
        self.listener.add_service(self.zeroconf, fqn, name)
        assert_that(self.fired(), is_(empty()))
        assert_that(self.sut.records[key], is_(resolved_record()))

    def test_remove_service(self):
        self.sut.records[key] = resolved_record()
        self.listener.remove_service(self.zeroconf, fqn, name)
        assert_that(self.fired(), is_([ServiceRemovedEvent(self.sut, key)]))
        assert_that(self.sut.records, is_({}))

    def test_update_service_refreshes(self):
        self.listener.update_service(self.zeroconf, fqn, name)
        self.sut._resolve_in_background.assert_called_once_with(self.session(), self.zeroconf, fqn, name,
                                                                refresh=True)

    def test_events_from_stopped_session_are_discarded(self):
        self.sut.stop()
        self.fired()
        self.listener.add_service(self.zeroconf, fqn, name)
        self.listener.remove_service(self.zeroconf, fqn, name)
        assert_that(self.fired(), is_(empty()))
        assert_that(self.sut.records, is_({}))

    def test_events_not_fired_until_update(self):
        self.listener.add_service(self.zeroconf, fqn, name)
        assert_that(self.events, is_(empty()))

    def test_resolution_after_removal_is_discarded(self):
        self.listener.add_service(self.zeroconf, fqn, name)
        self.listener.remove_service(self.zeroconf, fqn, name)
        self.sut._post(ServiceResolvedEvent(self.sut, key, resolved_record()), self.session())
        unresolved = ServiceRecord("Studio", "toy", "tcp", "local.")
        assert_that(self.fired(), is_([ServiceFoundEvent(self.sut, key, unresolved), ServiceRemovedEvent(self.sut, key)]))
        assert_that(key in self.sut.records, is_(False))


class ResolveTest(WatcherTestCase):

    def setUp(self):
        super().setUp()
        self.sut.start()
        self.fired()
        self.sut.records[key] = ServiceRecord("Studio", "toy", "tcp", "local.")

    def test_resolved(self):
        self.zeroconf.get_service_info.return_value = service_info(text=b"\x05ver=1")
        self.sut._resolve(self.session(), self.zeroconf, fqn, name)
        self.zeroconf.get_service_info.assert_called_once_with(fqn, name, timeout=3000)
        record = resolved_record(txt=b"\x05ver=1")
        assert_that(self.fired(), is_([ServiceResolvedEvent(self.sut, key, record)]))
        assert_that(self.sut.records[key], is_(record))

    def test_resolved_from_zeroconf_service_info(self):
        info = ServiceInfo(fqn, name, port=5000, addresses=[bytes([192, 168, 1, 5])], server="studio.local.")
        self.zeroconf.get_service_info.return_value = info
        self.sut._resolve(self.session(), self.zeroconf, fqn, name)
        record = self.fired()[0].record
        assert_that(record.hostname, is_("studio.local"))
        assert_that(record.port, is_(5000))
        assert_that(record.addresses, is_(["192.168.1.5"]))

    def test_several_addresses(self):
        self.zeroconf.get_service_info.return_value = service_info(
            addresses=(bytes([192, 168, 1, 5]), bytes([10, 0, 0, 7])))
        self.sut._resolve(self.session(), self.zeroconf, fqn, name)
        self.sut.update()
        assert_that(self.sut.records[key].addresses, contains_exactly("192.168.1.5", "10.0.0.7"))

    def test_resolve_timeout(self):
        self.zeroconf.get_service_info.return_value = None
        self.sut._resolve(self.session(), self.zeroconf, fqn, name)
        events = self.fired()
        assert_that(events, has_length(1))
        assert_that(events[0], is_(instance_of(ResolveFailedEvent)))
        assert_that(events[0].key, is_(key))
        assert_that(self.sut.records[key].resolved, is_(False))

    def test_resolve_error(self):
        error = OSError("closed")
        self.zeroconf.get_service_info.side_effect = error
        self.sut._resolve(self.session(), self.zeroconf, fqn, name)
        assert_that(self.fired(), is_([ResolveFailedEvent(self.sut, key, error)]))

    def test_incomplete_info_fails(self):
        self.zeroconf.get_service_info.return_value = service_info(server=None)
        self.sut._resolve(self.session(), self.zeroconf, fqn, name)
        assert_that(self.fired()[0], is_(instance_of(ResolveFailedEvent)))

    def test_resolution_after_stop_is_discarded(self):
        session = self.session()
        self.sut.stop()
        self.fired()
        self.zeroconf.get_service_info.return_value = service_info()
        self.sut._resolve(session, self.zeroconf, fqn, name)
        assert_that(self.fired(), is_(empty()))
        assert_that(self.sut.records[key].resolved, is_(False))

    def test_failure_after_stop_is_not_reported(self):
        session = self.session()
        self.sut.stop()
        self.fired()
        self.zeroconf.get_service_info.side_effect = RuntimeError("event loop is closed")
        self.sut._resolve(session, self.zeroconf, fqn, name)
        self.sut.logger.warning.assert_not_called()
        assert_that(self.fired(), is_(empty()))

    def test_unexpected_error_in_live_session_propagates(self):
        self.zeroconf.get_service_info.side_effect = RuntimeError("boom")
        assert_that(calling(self.sut._resolve).with_args(self.session(), self.zeroconf, fqn, name),
                    raises(RuntimeError))

    def test_resolve_in_background(self):
        done = threading.Event()
        self.zeroconf.get_service_info.side_effect = lambda *args, **kwargs: done.set()
        self.sut._resolve_in_background(self.session(), self.zeroconf, fqn, name)
        assert_that(done.wait(2), is_(True))


class RefreshTest(WatcherTestCase):

    def setUp(self):
        super().setUp()
        self.sut.start()
        self.fired()
        self.sut.records[key] = resolved_record(txt=b"a")

    def refresh(self, record):
        self.sut._post(ServiceRefreshedEvent(self.sut, key, record), self.session())
        return self.fired()

    def test_txt_change(self):
        events = self.refresh(resolved_record(txt=b"b"))
        assert_that(events, is_([TXTUpdatedEvent(self.sut, key, b"b")]))
        assert_that(self.sut.records[key].txt_record, is_(b"b"))

    def test_txt_update_is_in_place(self):
        record = self.sut.records[key]
        self.refresh(resolved_record(txt=b"b"))
        assert_that(self.sut.records[key], is_(record))

    def test_host_change_resolves_again(self):
        moved = resolved_record(hostname="other.local", txt=b"a")
        assert_that(self.refresh(moved), is_([ServiceResolvedEvent(self.sut, key, moved)]))
        assert_that(self.sut.records[key], is_(moved))

    def test_no_change(self):
        assert_that(self.refresh(resolved_record(txt=b"a")), is_(empty()))

    def test_unknown_service(self):
        del self.sut.records[key]
        assert_that(self.refresh(resolved_record()), is_(empty()))


class ResolveRetryTest(TestCase):

    def setUp(self):
        self.strategy = Mock(return_value=10)
        self.sut = DiscoveryWatcher("toy", resolve_retry=Mock(return_value=self.strategy),
                                    zeroconf_factory=Mock(), browser_factory=Mock(), log=Mock())
        self.sut.start()
        self.sut.records[key] = ServiceRecord("Studio", "toy", "tcp", "local.")
        self.sut._resolve_in_background = Mock()
        self.sut._post(ResolveFailedEvent(self.sut, key, "timeout"), self.sut._session)
        self.sut.update(100)

    def test_not_retried_before_due(self):
        self.sut.update(105)
        self.strategy.assert_called_once_with(105)
        self.sut._resolve_in_background.assert_not_called()

    def test_retried_when_due(self):
        self.strategy.return_value = 0
        self.sut.update(110)
        self.sut._resolve_in_background.assert_called_once_with(self.sut._session, self.sut.zeroconf, fqn, name)

    def test_resolved_clears_retry(self):
        self.sut._post(ServiceResolvedEvent(self.sut, key, resolved_record()), self.sut._session)
        self.sut.update(105)
        self.strategy.return_value = 0
        self.sut.update(110)
        self.sut._resolve_in_background.assert_not_called()

    def test_not_retried_while_stopped(self):
        self.strategy.return_value = 0
        self.sut.stop()
        self.sut.update(110)
        self.sut._resolve_in_background.assert_not_called()

    def test_never_retried_by_default(self):
        sut = DiscoveryWatcher("toy", zeroconf_factory=Mock(), browser_factory=Mock(), log=Mock())
        assert_that(sut._resolve_retry, is_(NeverRetryStrategy))


class DefaultFactoriesTest(TestCase):

    def test_uses_zeroconf(self):
        with patch.object(watcher_module, 'Zeroconf') as Zeroconf, \
                patch.object(watcher_module, 'ServiceBrowser') as ServiceBrowser:
            sut = DiscoveryWatcher("toy", log=Mock())
            sut.start()
            Zeroconf.assert_called_once_with()
            assert_that(ServiceBrowser.call_args[0][:2], is_((Zeroconf.return_value, fqn)))
