"""Integration tests for the scan routes."""


class TestScanRoutes:
    """POST /scan, status, pause and resume."""

    def test_initial_status(self, client) -> None:
        resp = client.get("/scan/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["state"] == "stopped"
        assert body["is_scanning"] is False
        assert body["last_scan_time"] is None
        assert body["device_count"] == 0

    def test_start_scan(self, client) -> None:
        resp = client.post("/scan")
        assert resp.status_code == 202
        assert resp.json()["started"] is True

        status = client.get("/scan/status").json()
        assert status["last_scan_time"] is not None
        assert status["online_count"] == 2

    def test_pause_and_resume(self, client) -> None:
        resume = client.post("/scan/resume")
        assert resume.status_code == 200
        assert resume.json()["is_armed"] is True
        assert resume.json()["state"] == "armed"

        pause = client.post("/scan/pause")
        assert pause.json()["is_armed"] is False
        assert pause.json()["state"] == "stopped"
        assert pause.json()["next_scan_time"] is None


class TestSingleAddressRoute:
    """POST /scan/{address} -- diagnostic probe."""

    def test_responding_address(self, client, scanner) -> None:
        resp = client.post("/scan/192.168.1.2")
        assert resp.status_code == 200
        body = resp.json()
        assert len(body) == 1
        assert body[0]["is_online"] is True
        assert len(scanner.registry) == 0

    def test_silent_address(self, client) -> None:
        body = client.post("/scan/192.168.1.3").json()
        assert body[0]["is_online"] is False
        assert body[0]["response_time_ms"] == 0

    def test_malformed_address(self, client) -> None:
        resp = client.post("/scan/not-an-ip")
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Invalid IP address format"

    def test_ipv6_address(self, client) -> None:
        resp = client.post("/scan/fe80::1")
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Only IPv4 addresses are supported"
