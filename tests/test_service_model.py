"""Tests for the service model."""

import pytest

from lvs_pod_discovery.lvs.models import RealServer, VirtualService, service_key
from lvs_pod_discovery.lvs.service_model import ServiceModel


def _model(*keys):
    services = []
    for key in keys:
        host, port = key.split(":")
        services.append(VirtualService(hostname=host, port=int(port), protocol="TCP", scheduler="wrr"))
    return ServiceModel(services)


class TestModels:
    def test_real_server_key(self):
        assert RealServer("podA", 8080, 20).key == ("podA", 8080)

    def test_real_server_frozen(self):
        server = RealServer("podA", 8080, 20)
        with pytest.raises(AttributeError):
            server.weight = 40  # type: ignore

    def test_service_key(self):
        assert VirtualService(hostname="10.0.0.1", port=80).key == "10.0.0.1:80"
        assert service_key("lb.example.com", 443) == "lb.example.com:443"


class TestUpsert:
    def test_appends_new_backend(self):
        model = _model("h:80")
        model.upsert_backend("h:80", RealServer("a", 8080, 20))
        model.upsert_backend("h:80", RealServer("b", 8080, 20))
        assert list(model.get("h:80").backends) == [("a", 8080), ("b", 8080)]

    def test_replaces_in_place(self):
        model = _model("h:80")
        model.upsert_backend("h:80", RealServer("a", 8080, 20))
        model.upsert_backend("h:80", RealServer("b", 8080, 20))
        model.upsert_backend("h:80", RealServer("a", 8080, 60))
        backends = list(model.get("h:80").backends.values())
        assert backends == [RealServer("a", 8080, 60), RealServer("b", 8080, 20)]

    def test_idempotent(self):
        model = _model("h:80")
        model.upsert_backend("h:80", RealServer("a", 8080, 40))
        model.upsert_backend("h:80", RealServer("a", 8080, 40))
        assert list(model.get("h:80").backends.values()) == [RealServer("a", 8080, 40)]

    def test_same_address_other_port_is_distinct(self):
        model = _model("h:80")
        model.upsert_backend("h:80", RealServer("a", 8080, 40))
        model.upsert_backend("h:80", RealServer("a", 9090, 40))
        assert len(model.get("h:80").backends) == 2

    def test_unknown_service_raises(self):
        with pytest.raises(KeyError):
            _model("h:80").upsert_backend("x:1", RealServer("a", 8080, 40))

    def test_all_services(self):
        model = _model("h:80", "h:443")
        model.upsert_backend_all_services(RealServer("a", 8080, 20))
        for service in model:
            assert service.backends[("a", 8080)].weight == 20


class TestRemove:
    def test_removes_every_port_for_address(self):
        model = _model("h:80")
        model.upsert_backend("h:80", RealServer("a", 8080, 100))
        model.upsert_backend("h:80", RealServer("a", 9090, 100))
        model.upsert_backend("h:80", RealServer("b", 8080, 100))
        assert model.remove_backend("h:80", "a") == 2
        assert list(model.get("h:80").backends) == [("b", 8080)]

    def test_unknown_address_is_noop(self):
        model = _model("h:80")
        model.upsert_backend("h:80", RealServer("a", 8080, 100))
        assert model.remove_backend("h:80", "zzz") == 0
        assert len(model.get("h:80").backends) == 1

    def test_unknown_service_is_noop(self):
        assert _model("h:80").remove_backend("x:1", "a") == 0

    def test_all_services(self):
        model = _model("h:80", "h:443")
        model.upsert_backend_all_services(RealServer("a", 8080, 100))
        model.upsert_backend_all_services(RealServer("b", 8080, 100))
        assert model.remove_backend_all_services("a") == 2
        assert "a" not in model.addresses()
        assert model.addresses() == {"b"}
