from httpx import ASGITransport, AsyncClient

from registry_exports.jobs.errors import PersistenceFailure
from registry_exports.jobs.in_memory_repository import InMemoryExportJobRepository
from tests.conftest import ADMIN, CUSTOMER, OTHER_ADMIN, OTHER_VENDOR, VENDOR

ANALYTICS = "/api/v1/admin/analytics/exports"
VENDOR_ORDERS = "/api/v1/vendor/orders/exports"


async def test_health(client):
    assert (await client.get("/health")).json()["status"] == "healthy"
    assert (await client.get("/api/v1/health")).json()["repository_backend"] == "memory"


async def test_unauthenticated_requests_get_401(client):
    for response in (
        await client.post(ANALYTICS, json={}),
        await client.get(ANALYTICS),
        await client.get(f"{ANALYTICS}/abc"),
        await client.post(VENDOR_ORDERS, json={}),
    ):
        assert response.status_code == 401
        assert "error" in response.json()


async def test_wrong_role_gets_403(client, caller):
    caller.use(CUSTOMER)
    assert (await client.post(ANALYTICS, json={})).status_code == 403
    assert (await client.post(VENDOR_ORDERS, json={})).status_code == 403


async def test_enqueue_dedup_and_new_window(client, caller, clock):
    caller.use(ADMIN)
    body = {"tabId": "revenue", "dateRange": "last_30_days"}

    first = await client.post(ANALYTICS, json=body)
    assert first.status_code == 202
    data = first.json()
    assert data["queued"] is True
    assert data["deduped"] is False
    assert data["job"]["status"] == "pending"
    assert data["job"]["scope"] == {"tabId": "overview", "dateRange": "last_30_days"}
    assert data["job"]["queuedAt"].startswith("2026-01-10T09:00")
    j1 = data["job"]["id"]

    clock.advance(5)
    second = await client.post(ANALYTICS, json=body)
    assert second.status_code == 202
    assert second.json()["deduped"] is True
    assert second.json()["job"]["id"] == j1
    assert second.json()["message"] == "An export for this tab and range is already queued."

    clock.advance(15)
    third = await client.post(ANALYTICS, json=body)
    assert third.json()["deduped"] is False
    assert third.json()["job"]["id"] != j1


async def test_malformed_body_is_treated_as_empty(client, caller):
    caller.use(ADMIN)
    response = await client.post(
        ANALYTICS, content=b"{nope", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 202
    assert response.json()["job"]["scope"] == {"tabId": "overview", "dateRange": "last_30_days"}


async def test_missing_email_is_400(client, caller):
    caller.use(ADMIN.model_copy(update={"email": None}))
    response = await client.post(ANALYTICS, json={})
    assert response.status_code == 400
    assert response.json() == {"error": "Your account does not have an email address on file."}


async def test_list_shows_only_callers_jobs(client, caller, clock, analytics_repo):
    caller.use(ADMIN)
    own = (await client.post(ANALYTICS, json={"tabId": "financial"})).json()["job"]["id"]
    clock.advance(1)
    await analytics_repo.mark_failed(own, "query timeout", clock.now)

    caller.use(OTHER_ADMIN)
    await client.post(ANALYTICS, json={"tabId": "financial"})

    caller.use(ADMIN)
    jobs = (await client.get(ANALYTICS)).json()["jobs"]
    assert [job["id"] for job in jobs] == [own]
    assert jobs[0]["status"] == "failed"
    assert jobs[0]["lastError"] == "query timeout"
    assert jobs[0]["completedAt"] is not None
    assert set(jobs[0]) == {
        "id", "status", "scope", "queuedAt", "startedAt", "completedAt", "lastError",
    }


async def test_download_scenarios(client, caller, clock, analytics_repo):
    caller.use(ADMIN)
    j1 = (await client.post(ANALYTICS, json={"tabId": "revenue"})).json()["job"]["id"]
    j3 = (await client.post(ANALYTICS, json={"tabId": "financial"})).json()["job"]["id"]
    await analytics_repo.mark_processing(j3, clock.now)

    clock.advance(10)
    await analytics_repo.mark_completed(j1, "a,b\n1,2", clock.now)

    response = await client.get(f"{ANALYTICS}/{j1}")
    assert response.status_code == 200
    assert response.text == "a,b\n1,2"
    assert response.headers["content-type"] == "text/csv; charset=utf-8"
    assert response.headers["cache-control"] == "private, no-store"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="')
    assert disposition.endswith('-2026-01-10.csv"')

    assert (await client.get(f"{ANALYTICS}/{j3}")).status_code == 409
    assert (await client.get(f"{ANALYTICS}/missing")).status_code == 404

    caller.use(OTHER_ADMIN)
    forbidden = await client.get(f"{ANALYTICS}/{j1}")
    assert forbidden.status_code == 403
    assert forbidden.json() == {"error": "Forbidden"}


async def test_vendor_routes(client, caller, clock, vendor_repo):
    caller.use(VENDOR)
    created = await client.post(VENDOR_ORDERS, json={"status": "shipped", "q": "vase"})
    assert created.status_code == 202
    job = created.json()["job"]
    assert job["scope"] == {
        "vendorId": "vnd-1",
        "filters": {"status": "shipped", "q": "vase", "from": "", "to": ""},
    }

    again = await client.post(VENDOR_ORDERS, json={"q": "vase ", "status": "SHIPPED"})
    assert again.json()["deduped"] is True

    await vendor_repo.mark_completed(job["id"], '"Order Code"\n"GX-1"', clock.now)
    download = await client.get(f"{VENDOR_ORDERS}/{job['id']}")
    assert download.status_code == 200
    assert 'filename="vendor-orders-shipped-2026-01-10.csv"' in download.headers["content-disposition"]

    caller.use(OTHER_VENDOR)
    assert (await client.get(f"{VENDOR_ORDERS}/{job['id']}")).status_code == 403
    assert (await client.get(VENDOR_ORDERS)).json() == {"jobs": []}


async def test_vendor_without_vendor_record_is_404(client, caller):
    caller.use(VENDOR.model_copy(update={"vendor_id": None}))
    response = await client.post(VENDOR_ORDERS, json={})
    assert response.status_code == 404
    assert response.json() == {"error": "Vendor profile not found."}


async def test_store_failure_is_generic_500(app, caller, monkeypatch, analytics_repo):
    async def broken_insert(job):
        raise PersistenceFailure()

    monkeypatch.setattr(analytics_repo, "insert", broken_insert)
    caller.use(ADMIN)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(ANALYTICS, json={})
    assert response.status_code == 500
    assert response.json() == {"error": PersistenceFailure.default_message}


async def test_unexpected_error_is_generic_500(app, caller, monkeypatch, analytics_repo):
    async def exploding_list(requested_by, limit):
        raise RuntimeError("connection string with secrets")

    monkeypatch.setattr(analytics_repo, "list_by_owner", exploding_list)
    caller.use(ADMIN)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get(ANALYTICS)
    assert response.status_code == 500
    assert "secrets" not in response.text


async def test_unique_inflight_store_still_answers_202(caller, clock):
    from registry_exports.auth.supabase_auth import get_current_principal
    from registry_exports.config import Settings
    from registry_exports.main import create_app

    app = create_app(
        settings=Settings(repository_backend="memory", enforce_unique_inflight=True),
        analytics_repository=InMemoryExportJobRepository(enforce_unique_inflight=True),
        clock=clock,
    )
    app.dependency_overrides[get_current_principal] = caller
    caller.use(ADMIN)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        first = await ac.post(ANALYTICS, json={})
        clock.advance(30)
        second = await ac.post(ANALYTICS, json={})
    assert first.status_code == second.status_code == 202
    assert second.json()["deduped"] is True
    assert second.json()["job"]["id"] == first.json()["job"]["id"]


def test_create_app_keeps_injected_empty_stores(clock):
    from registry_exports.config import Settings
    from registry_exports.main import create_app

    analytics = InMemoryExportJobRepository()
    vendor = InMemoryExportJobRepository()
    assert len(analytics) == 0

    app = create_app(
        settings=Settings(repository_backend="memory"),
        analytics_repository=analytics,
        vendor_repository=vendor,
        clock=clock,
    )
    assert app.state.analytics_exports.repository is analytics
    assert app.state.vendor_order_exports.repository is vendor


async def test_jobs_queued_over_http_land_in_injected_store(client, caller, analytics_repo):
    caller.use(ADMIN)
    job_id = (await client.post(ANALYTICS, json={})).json()["job"]["id"]
    assert (await analytics_repo.find_by_id(job_id)) is not None
