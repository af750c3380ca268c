from backoffice.domain.columns.dependency_graph import ColumnDependencyGraph, recompute_row
from backoffice.domain.columns.registry import BOOKING_COLUMNS
from backoffice.domain.columns.service import ColumnService
from backoffice.models import BookingSheetColumn


def make_column(column_id, order, function=None, references=()):
    if function is None:
        return {"id": column_id, "dataType": "string", "order": order}
    return {
        "id": column_id,
        "dataType": "function",
        "order": order,
        "function": function,
        "arguments": [{"name": ref, "columnReference": ref} for ref in references],
    }


class TestGraph:
    def setup_method(self):
        self.graph = ColumnDependencyGraph(
            [
                make_column("a", 1),
                make_column("b", 2, "getFullName", ["a"]),
                make_column("c", 3, "getFullName", ["b", "a"]),
                make_column("d", 4),
            ]
        )

    def test_dependents_are_transitive(self):
        assert self.graph.get_dependents("a") == ["b", "c"]
        assert self.graph.get_dependents("d") == []

    def test_dependencies_are_transitive(self):
        assert self.graph.get_dependencies("c") == ["a", "b"]

    def test_recompute_order_puts_dependencies_first(self):
        assert self.graph.recompute_order(["a"]) == ["b", "c"]
        assert self.graph.recompute_order(["b"]) == ["c"]
        assert self.graph.recompute_order(["d"]) == []

    def test_to_dict(self):
        graph = self.graph.to_dict()
        assert graph["dependencies"]["c"] == ["a", "b"]
        assert graph["dependents"]["a"] == ["b", "c"]
        assert "d" not in graph["dependencies"]

    def test_cycle_detection(self):
        assert not self.graph.has_circular_dependencies()
        cyclic = ColumnDependencyGraph(
            [make_column("x", 1, "getFullName", ["y"]), make_column("y", 2, "getFullName", ["x"])]
        )
        assert cyclic.has_circular_dependencies()


def test_builtin_columns_have_no_cycles():
    assert not ColumnDependencyGraph(BOOKING_COLUMNS).has_circular_dependencies()


def test_name_change_recomputes_booking_id():
    graph = ColumnDependencyGraph()
    assert "bookingId" in graph.get_dependents("firstName")
    assert "fullName" in graph.get_dependents("firstName")


def test_recompute_row_updates_name_columns():
    row = {"firstName": "Jane", "lastName": "Smith", "fullName": "John Doe", "travellerInitials": "JD"}
    updated = recompute_row(row, ["firstName"])
    assert updated["fullName"] == "Jane Smith"
    assert updated["travellerInitials"] == "JS"
    assert row["fullName"] == "John Doe"


def test_seed_columns_is_idempotent(db):
    service = ColumnService(db)
    added = service.seed_columns()
    assert added == len(BOOKING_COLUMNS)
    assert service.seed_columns() == 0
    assert db.query(BookingSheetColumn).count() == len(BOOKING_COLUMNS)


def test_column_dependencies_endpoint(client):
    response = client.get("/columns/fullName/dependencies")
    assert response.status_code == 200
    body = response.json()
    assert body["dependencies"] == ["firstName", "lastName"]
    assert body["columnsToRecompute"][0] == "fullName"


def test_unknown_column_is_404(client):
    assert client.get("/columns/nope/dependencies").status_code == 404
