import json
from datetime import date

import pytest

from taskdeps import mcp_server
from taskdeps.models import ProjectConfig
from taskdeps.persistence import Store


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    mcp_server.add_task("Design", planned_start="2026-03-02", planned_finish="2026-03-06")
    mcp_server.add_task("Build", planned_start="2026-03-06", planned_finish="2026-03-20")
    mcp_server.add_task("Ship")
    return tmp_path


def test_add_task_rejects_bad_date(workdir):
    assert mcp_server.add_task("Later", planned_start="next week").startswith("Error:")
    assert "T-4" not in Store().load().tasks


def test_add_dependency_returns_edge_json(workdir):
    edge = json.loads(mcp_server.add_dependency("T-1", "T-2", "ss", 3))
    assert edge["predecessor_id"] == "T-1"
    assert edge["successor_id"] == "T-2"
    assert edge["type"] == "SS"
    assert edge["lag_days"] == 3
    assert edge["id"] in Store().load().edges


def test_rejections_come_back_as_error_strings(workdir):
    mcp_server.add_dependency("T-1", "T-2")
    mcp_server.add_dependency("T-2", "T-3")

    cycle = mcp_server.add_dependency("T-3", "T-1")
    assert cycle.startswith("Error:")
    assert "cycle" in cycle

    duplicate = mcp_server.add_dependency("T-1", "T-2", "FF", 1)
    assert duplicate.startswith("Error:")
    assert "already depends on" in duplicate

    invalid = mcp_server.add_dependency("T-1", "T-3", "XX")
    assert invalid.startswith("Error: invalid dependency type 'XX'")

    unknown = mcp_server.add_dependency("T-1", "T-9")
    assert unknown.startswith("Error:")

    assert len(Store().load().edges) == 2


def test_update_and_remove_dependency(workdir):
    edge = json.loads(mcp_server.add_dependency("T-1", "T-2"))

    updated = json.loads(mcp_server.update_dependency(edge["id"], "ff", -2))
    assert updated["type"] == "FF"
    assert updated["lag_days"] == -2
    assert mcp_server.update_dependency(edge["id"], "XX").startswith("Error:")

    assert mcp_server.remove_dependency(edge["id"]) == f"Removed dependency {edge['id']}."
    assert mcp_server.remove_dependency(edge["id"]).startswith("Error:")


def test_task_and_project_views(workdir):
    mcp_server.add_dependency("T-1", "T-2", lag_days=2)

    view = json.loads(mcp_server.get_task_dependencies("T-2"))
    assert [e["predecessor_id"] for e in view["predecessors"]] == ["T-1"]
    assert view["successors"] == []
    assert view["can_link"] == ["T-3"]
    assert mcp_server.get_task_dependencies("T-9").startswith("Error:")

    # Build starts on the 6th, before Design finishes + 2 days.
    project = json.loads(mcp_server.get_project_dependencies())
    assert [e["violated"] for e in project] == [True]
    assert mcp_server.get_project_dependencies("garden") == "No dependencies in project 'garden'."


def test_get_constraints_reports_project_day(workdir):
    store = Store()
    data = store.load()
    data.config = ProjectConfig(start_date=date(2026, 3, 2))
    store.save(data)
    mcp_server.add_dependency("T-1", "T-2", lag_days=2)

    result = json.loads(mcp_server.get_constraints("T-2"))
    [c] = result["constraints"]
    assert c["field"] == "start"
    assert c["earliest"] == "2026-03-08"
    assert c["day"] == 6
    assert c["rule"] == "T-2.start >= 2026-03-08"
    assert result["earliest_start"] == "2026-03-08"
    assert result["earliest_finish"] is None

    assert mcp_server.get_constraints("T-9").startswith("Error:")
