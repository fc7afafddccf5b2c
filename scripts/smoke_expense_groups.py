from expense_tracker.main import create_app
from fastapi.testclient import TestClient
from expense_tracker.core.config import Settings
from pathlib import Path
import tempfile
import json


def run():
    with tempfile.TemporaryDirectory() as d:
        settings = Settings(data_dir=Path(d), db_path=Path(d) / "smoke.sqlite3")
        app = create_app(settings_override=settings)
        client = TestClient(app)
        base = "/api/expensegroups"

        results = {}
        created = client.post(base, json={"userId": "u1", "status": 1, "name": "Trip"})
        results["create_status"] = created.status_code
        results["create_location"] = created.headers.get("Location")
        group_id = created.json()["id"]
        results["get"] = client.get(f"{base}/{group_id}").json()
        results["patch"] = client.patch(
            f"{base}/{group_id}",
            json=[{"op": "replace", "path": "/status", "value": 2}],
        ).json()
        bad_patch = client.patch(
            f"{base}/{group_id}", json=[{"op": "test", "path": "/status", "value": 3}]
        )
        results["failed_test_op_status"] = bad_patch.status_code
        listing = client.get(base, params={"status": "confirmed", "pageSize": 5})
        results["list_pagination"] = json.loads(listing.headers["X-Pagination"])
        results["delete_status"] = client.delete(f"{base}/{group_id}").status_code
        results["get_after_delete_status"] = client.get(f"{base}/{group_id}").status_code
        print(json.dumps(results, indent=2))


if __name__ == "__main__":
    run()
