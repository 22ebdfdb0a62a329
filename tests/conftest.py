import pytest

from hosting_connection_cleaner import (
    HostingConnection,
    ProvisioningTask,
    ResourceUnit,
    UnavailableError,
)


def make_connection(name):
    return HostingConnection(name=name, path=f"XDHyp:\\Connections\\{name}", uid=f"uid-{name}", plugin="VmwareFactory")


def make_unit(unit_id, connection_name):
    return ResourceUnit(
        id=unit_id,
        name=unit_id,
        path=f"XDHyp:\\HostingUnits\\{unit_id}",
        connection_name=connection_name,
        link_id=f"link-{unit_id}",
    )


def make_task(task_id, unit):
    return ProvisioningTask(id=task_id, active=True, resource_unit_id=unit.link_id, kind="NewVMs")


class FakeSite:
    """In-memory site that records every mutating call."""

    def __init__(self, connections=(), units=None, tasks=()):
        self.connections = list(connections)
        self.units = {name: list(us) for name, us in (units or {}).items()}
        self.tasks = list(tasks)
        self.calls = []
        self.failures = {}
        self.raises = {}
        self.listing_unavailable = False
        self.audit_unavailable_for = None
        self.operations = []
        self.disconnected = False
        self._next_op = 0

    def fail(self, call, key, exc=None):
        if exc is None:
            self.failures[(call, key)] = True
        else:
            self.raises[(call, key)] = exc

    def _record(self, call, key):
        self.calls.append((call, key))
        if (call, key) in self.raises:
            raise self.raises[(call, key)]
        if self.failures.get((call, key)):
            return False, f"{call} {key} failed: HTTP 500"
        return True, f"{call} {key} succeeded"

    # listing / task service
    def check_site(self):
        if self.listing_unavailable:
            raise UnavailableError("Failed to reach the site")
        return {"name": "Site1"}

    def list_hosting_connections(self):
        if self.listing_unavailable:
            raise UnavailableError("Failed to list hosting connections")
        return list(self.connections)

    def list_resource_units(self, connection_name):
        return list(self.units.get(connection_name, []))

    def find_active_task(self, link_id):
        for task in self.tasks:
            if task.active and task.resource_unit_id == link_id:
                return task
        return None

    # mutations
    def stop_task(self, task_id):
        ok, message = self._record("stop_task", task_id)
        if ok:
            for task in self.tasks:
                if task.id == task_id:
                    task.active = False
        return ok, message

    def remove_task(self, task_id):
        ok, message = self._record("remove_task", task_id)
        if ok:
            self.tasks = [t for t in self.tasks if t.id != task_id]
        return ok, message

    def remove_resource_unit(self, unit):
        ok, message = self._record("remove_resource_unit", unit.id)
        if ok:
            self.units[unit.connection_name] = [u for u in self.units[unit.connection_name] if u.id != unit.id]
        return ok, message

    def remove_hosting_connection(self, connection):
        return self._record("remove_hosting_connection", connection.name)

    def remove_broker_registration(self, connection_name):
        return self._record("remove_broker_registration", connection_name)

    # configuration logging
    def start_high_level_operation(self, text, operation_type, target_types):
        if self.audit_unavailable_for and self.audit_unavailable_for in text:
            raise UnavailableError(f"Failed to start logging operation '{text}'")
        self._next_op += 1
        op_id = f"op-{self._next_op}"
        self.operations.append(("open", op_id, text))
        return op_id

    def stop_high_level_operation(self, op_id, successful):
        self.operations.append(("close", op_id, successful))
        return True, f"Stop logging operation {op_id} succeeded"

    # session
    def authenticate_with_token(self, token):
        self.token = token

    def authenticate_with_credentials(self, username, password):
        self.credentials = (username, password)

    def disconnect(self):
        self.disconnected = True


def assert_operations_paired(site):
    """Every opened operation is closed exactly once, in order."""
    opened = [op_id for kind, op_id, _ in site.operations if kind == "open"]
    closed = [op_id for kind, op_id, _ in site.operations if kind == "close"]
    assert opened == closed
    for index in range(0, len(site.operations), 2):
        assert site.operations[index][0] == "open"
        assert site.operations[index + 1][0] == "close"
        assert site.operations[index][1] == site.operations[index + 1][1]


@pytest.fixture
def single_task_site():
    """HV1 with one resource connection RU1 holding active task T1."""
    hv1 = make_connection("HV1")
    ru1 = make_unit("RU1", "HV1")
    return FakeSite(connections=[hv1], units={"HV1": [ru1]}, tasks=[make_task("T1", ru1)])


@pytest.fixture
def two_unit_site():
    """HV1 with RU1 (active task T1) and RU2 (no task)."""
    hv1 = make_connection("HV1")
    ru1 = make_unit("RU1", "HV1")
    ru2 = make_unit("RU2", "HV1")
    return FakeSite(connections=[hv1], units={"HV1": [ru1, ru2]}, tasks=[make_task("T1", ru1)])
