#!/usr/bin/env python3
"""
Hosting Connection Cleanup Tool
Description:
Removes a hosting connection from a virtual desktop delivery site, or only its
resource connection, once the provisioning task that blocks it has been
stopped and removed. Every destructive step is confirmed by the operator and
bracketed by a high-level operation in the site configuration log.

Use at your own risk: the site only ever reports one active provisioning task
per query and cannot tell a stale task from a current one. Do not run this
while an unrelated provisioning task is legitimately in flight elsewhere in
the site.

Requirements:
    - Python 3.8+
    - requests

Usage:
    Interactive:  python hosting_connection_cleaner.py --admin-address ddc01.example.com
    Scripted:     python hosting_connection_cleaner.py --connection HV1 --resource-only --yes
    Dry run:      python hosting_connection_cleaner.py --connection HV1 --dry-run
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import requests
import urllib3

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ADDRESS = "localhost"
DEFAULT_TIMEOUT = 60.0
API_ROOT = "cvadapi/v1"
LOG_SOURCE = "Hosting Connection Cleaner"
OPERATION_TYPE = "AdminActivity"
SUCCESS_CODES = (200, 202, 204)

STATUS_COMPLETED = "completed"
STATUS_NO_ACTIVE_TASK = "no_active_task"


def load_env_file(env_path: str = ".env"):
    """
    Load KEY=VALUE pairs from a .env file into the environment.

    Variables that are already set win over the file. A missing file is not
    an error.
    """
    if not os.path.exists(env_path):
        return

    try:
        with open(env_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue

                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip()
                if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                    value = value[1:-1]

                os.environ.setdefault(key, value)
    except OSError as e:
        logger.warning(f"Failed to load {env_path}: {e}")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "false").strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class CleanerConfig:
    """Settings for one cleanup run. Passed explicitly, never read from globals."""
    admin_address: str = DEFAULT_ADMIN_ADDRESS
    resource_only: bool = False
    dry_run: bool = False
    confirm_all: bool = False
    verify_ssl: bool = True
    use_http: bool = False
    timeout: float = DEFAULT_TIMEOUT
    token: Optional[str] = field(default=None, repr=False)
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)


def config_from_args(args) -> CleanerConfig:
    """Build a CleanerConfig from parsed command line arguments."""
    return CleanerConfig(
        admin_address=args.admin_address or DEFAULT_ADMIN_ADDRESS,
        resource_only=args.resource_only,
        dry_run=args.dry_run,
        confirm_all=args.yes,
        verify_ssl=not args.skip_ssl_verify,
        use_http=args.use_http,
        timeout=args.timeout,
        token=args.token,
        username=args.username,
        password=args.password,
    )


# ---------------------------------------------------------------------------
# Errors and data model
# ---------------------------------------------------------------------------

class CleanerError(Exception):
    """Base class for errors that abort a cleanup run."""


class UnavailableError(CleanerError):
    """A listing or query call against the site could not be completed."""


class NotFoundError(CleanerError):
    """The chosen hosting connection, or its resource connections, do not exist."""


class StepOutcome(Enum):
    OK = "ok"
    FAILED = "failed"
    DECLINED = "declined"


@dataclass
class HostingConnection:
    """A hosting connection (hypervisor integration) in the site."""
    name: str
    path: str
    uid: str = ""
    plugin: str = ""


@dataclass
class ResourceUnit:
    """A resource connection belonging to exactly one hosting connection."""
    id: str
    name: str
    path: str
    connection_name: str
    link_id: str  # what provisioning tasks reference


@dataclass
class ProvisioningTask:
    id: str
    active: bool
    resource_unit_id: str
    kind: str = ""
    status: str = ""


@dataclass
class HighLevelOperation:
    """One entry in the site configuration log."""
    id: str
    label: str
    kind: str
    targets: Tuple[str, ...]
    is_open: bool = True
    successful: Optional[bool] = None


@dataclass
class StepRecord:
    action: str
    target: str
    outcome: StepOutcome
    message: str = ""
    operation_id: Optional[str] = None


@dataclass
class TeardownReport:
    connection_name: str
    resource_only: bool
    status: str = ""
    saved_unit_id: Optional[str] = None
    drained_task_ids: List[str] = field(default_factory=list)
    steps: List[StepRecord] = field(default_factory=list)

    def ok_steps(self) -> List[StepRecord]:
        return [s for s in self.steps if s.outcome is StepOutcome.OK]

    def failed_steps(self) -> List[StepRecord]:
        return [s for s in self.steps if s.outcome is StepOutcome.FAILED]

    def declined_steps(self) -> List[StepRecord]:
        return [s for s in self.steps if s.outcome is StepOutcome.DECLINED]


# ---------------------------------------------------------------------------
# Site admin API client
# ---------------------------------------------------------------------------

class SiteAdminClient:
    """Delivery controller admin REST API client."""

    def __init__(self, host: str, verify_ssl: bool = True, timeout: float = DEFAULT_TIMEOUT,
                 use_http: bool = False):
        self.host = host.rstrip('/')
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        scheme = "http" if use_http else "https"
        self.base_url = f"{scheme}://{self.host}/{API_ROOT}"
        self.session = requests.Session()
        self.session.verify = verify_ssl
        self.access_token: Optional[str] = None

        if not verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def _get_headers(self) -> dict:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _url(self, *parts: str) -> str:
        quoted = [requests.utils.quote(str(p), safe="$") for p in parts]
        return "/".join([self.base_url, *quoted])

    def authenticate_with_token(self, token: str):
        """Use a bearer token for every following request."""
        self.access_token = token
        self.session.auth = None

    def authenticate_with_credentials(self, username: str, password: str):
        """Use HTTP basic authentication for every following request."""
        self.access_token = None
        self.session.auth = (username, password)

    def _get_json(self, what: str, *parts: str, params: Optional[dict] = None) -> dict:
        url = self._url(*parts)
        logger.debug(f"GET {url} params={params}")
        try:
            response = self.session.get(url, headers=self._get_headers(), params=params,
                                        timeout=self.timeout)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.exceptions.RequestException as e:
            raise UnavailableError(f"Failed to {what}: {e}") from e
        except ValueError as e:
            raise UnavailableError(f"Failed to {what}: invalid response ({e})") from e

    def _mutate(self, description: str, method: str, *parts: str,
                params: Optional[dict] = None, body: Optional[dict] = None) -> Tuple[bool, str]:
        """
        Issue a mutating request.

        Returns:
            Tuple of (success: bool, message: str). Remote failures never raise.
        """
        url = self._url(*parts)
        logger.debug(f"{method} {url} params={params} body={body}")
        try:
            response = self.session.request(method, url, headers=self._get_headers(),
                                            params=params, json=body, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            return False, f"{description} failed: {e}"

        if response.status_code in SUCCESS_CODES:
            return True, f"{description} succeeded"
        return False, f"{description} failed: HTTP {response.status_code}"

    def check_site(self) -> dict:
        """Probe the controller; raises UnavailableError when it cannot be reached."""
        return self._get_json(f"reach the site at {self.host}", "site")

    def list_hosting_connections(self) -> List[HostingConnection]:
        """List hosting connections; an empty list is a valid answer."""
        data = self._get_json("list hosting connections", "hostingConnections")
        connections = []
        for item in data.get("items", []):
            connections.append(HostingConnection(
                name=item.get("name", ""),
                path=item.get("path", ""),
                uid=str(item.get("uid", "")),
                plugin=item.get("pluginId", ""),
            ))
        return connections

    def list_resource_units(self, connection_name: str) -> List[ResourceUnit]:
        data = self._get_json(f"list resource connections of '{connection_name}'",
                              "hostingConnections", connection_name, "resourceUnits")
        units = []
        for item in data.get("items", []):
            units.append(ResourceUnit(
                id=str(item.get("id", "")),
                name=item.get("name", ""),
                path=item.get("path", ""),
                connection_name=connection_name,
                link_id=str(item.get("linkId", "")),
            ))
        return units

    def find_active_task(self, link_id: str) -> Optional[ProvisioningTask]:
        """
        Return the active provisioning task reported for a resource connection.

        The task service answers with at most one active task and does not
        tell a stale task from a current one. Callers get whatever it
        surfaces first, which is not guaranteed to be the task they expect.
        """
        data = self._get_json("query active provisioning tasks", "provisioningTasks",
                              params={"active": "true", "resourceUnitId": link_id,
                                      "maxRecordCount": 1})
        items = data.get("items", [])
        if not items:
            return None
        item = items[0]
        return ProvisioningTask(
            id=str(item.get("id", "")),
            active=bool(item.get("active", True)),
            resource_unit_id=str(item.get("resourceUnitId", link_id)),
            kind=item.get("type", ""),
            status=item.get("status", ""),
        )

    def stop_task(self, task_id: str) -> Tuple[bool, str]:
        return self._mutate(f"Stop provisioning task {task_id}", "POST",
                            "provisioningTasks", task_id, "$stop")

    def remove_task(self, task_id: str) -> Tuple[bool, str]:
        return self._mutate(f"Remove provisioning task {task_id}", "DELETE",
                            "provisioningTasks", task_id)

    def remove_resource_unit(self, unit: ResourceUnit) -> Tuple[bool, str]:
        return self._mutate(f"Remove resource connection {unit.path}", "DELETE",
                            "objects", params={"path": unit.path})

    def remove_hosting_connection(self, connection: HostingConnection) -> Tuple[bool, str]:
        return self._mutate(f"Remove hosting connection {connection.path}", "DELETE",
                            "objects", params={"path": connection.path})

    def remove_broker_registration(self, connection_name: str) -> Tuple[bool, str]:
        return self._mutate(f"Remove broker hypervisor connection {connection_name}", "DELETE",
                            "broker", "hypervisorConnections", connection_name)

    def start_high_level_operation(self, text: str, operation_type: str,
                                   target_types: Sequence[str]) -> str:
        """Open a configuration log operation and return its id."""
        url = self._url("logging", "highLevelOperations")
        body = {
            "text": text,
            "source": LOG_SOURCE,
            "operationType": operation_type,
            "targetTypes": list(target_types),
        }
        try:
            response = self.session.post(url, headers=self._get_headers(), json=body,
                                         timeout=self.timeout)
            response.raise_for_status()
            op_id = response.json().get("id")
        except requests.exceptions.RequestException as e:
            raise UnavailableError(f"Failed to start logging operation '{text}': {e}") from e
        except ValueError as e:
            raise UnavailableError(f"Failed to start logging operation '{text}': {e}") from e
        if not op_id:
            raise UnavailableError(f"Failed to start logging operation '{text}': no id returned")
        return str(op_id)

    def stop_high_level_operation(self, op_id: str, successful: bool) -> Tuple[bool, str]:
        return self._mutate(f"Stop logging operation {op_id}", "POST",
                            "logging", "highLevelOperations", op_id, "$stop",
                            body={"isSuccessful": successful})

    def disconnect(self):
        self.session.close()
        self.access_token = None


# ---------------------------------------------------------------------------
# Configuration logging
# ---------------------------------------------------------------------------

class AuditLog:
    """
    Brackets destructive actions with high-level operations.

    Operations are not reentrant: a second open while one is still open is a
    programming error, and every open must be closed exactly once.
    """

    def __init__(self):
        self.current: Optional[HighLevelOperation] = None
        self.history: List[HighLevelOperation] = []

    def open(self, label: str, kind: str, targets: Iterable[str]) -> str:
        if self.current is not None:
            raise RuntimeError(f"High-level operation {self.current.id} is still open")
        targets = tuple(targets)
        op_id = self._start(label, kind, targets)
        self.current = HighLevelOperation(id=op_id, label=label, kind=kind, targets=targets)
        self.history.append(self.current)
        logger.debug(f"Opened high-level operation {op_id}: {label}")
        return op_id

    def close(self, op_id: str, success: bool):
        if self.current is None or self.current.id != op_id:
            raise RuntimeError(f"High-level operation {op_id} is not open")
        operation = self.current
        self.current = None
        operation.is_open = False
        operation.successful = success
        logger.debug(f"Closing high-level operation {op_id} (success={success})")
        self._stop(op_id, success)

    def _start(self, label: str, kind: str, targets: Tuple[str, ...]) -> str:
        raise NotImplementedError

    def _stop(self, op_id: str, success: bool):
        raise NotImplementedError


class SiteAuditLog(AuditLog):
    """AuditLog backed by the site's configuration logging service."""

    def __init__(self, client):
        super().__init__()
        self.client = client

    def _start(self, label, kind, targets):
        return self.client.start_high_level_operation(label, kind, targets)

    def _stop(self, op_id, success):
        ok, message = self.client.stop_high_level_operation(op_id, success)
        if not ok:
            logger.warning(message)


# ---------------------------------------------------------------------------
# Confirmation gates
# ---------------------------------------------------------------------------

class ConfirmationGate:
    """Decides whether a destructive action may go ahead."""

    def ask(self, subject: str, action: str) -> bool:
        raise NotImplementedError


class AutoConfirmGate(ConfirmationGate):
    """Answers every question the same way."""

    def __init__(self, answer: bool = True):
        self.answer = answer

    def ask(self, subject, action):
        return self.answer


class ScriptedConfirmationGate(ConfirmationGate):
    """Replays a fixed sequence of answers, then falls back to a default."""

    def __init__(self, answers: Iterable[bool], default: bool = False):
        self._answers = iter(answers)
        self.default = default
        self.asked: List[Tuple[str, str]] = []

    def ask(self, subject, action):
        self.asked.append((subject, action))
        return next(self._answers, self.default)


class DryRunGate(ConfirmationGate):
    """Prints what would happen and withholds confirmation for every step."""

    def __init__(self, output: Callable[[str], None] = print):
        self.output = output
        self.planned: List[Tuple[str, str]] = []

    def ask(self, subject, action):
        self.planned.append((subject, action))
        self.output(f'What if: Performing the operation "{action}" on target "{subject}".')
        return False


class ConsoleConfirmationGate(ConfirmationGate):
    """
    Interactive per-step confirmation.

    Answers:
        Y - yes, A - yes to all remaining steps,
        N - no (the default), L - no to all remaining steps.
    End of input counts as "no to all".
    """

    PROMPT = '[Y] Yes  [A] Yes to All  [N] No  [L] No to All (default is "N"): '

    def __init__(self, input_func: Optional[Callable[[str], str]] = None,
                 output: Callable[[str], None] = print):
        self._input = input_func or input
        self.output = output
        self._sticky: Optional[bool] = None

    def ask(self, subject, action):
        if self._sticky is not None:
            return self._sticky

        self.output("\nConfirm")
        self.output("Are you sure you want to perform this action?")
        self.output(f'Performing the operation "{action}" on target "{subject}".')
        while True:
            try:
                reply = self._input(self.PROMPT).strip().upper()
            except EOFError:
                reply = "L"

            if reply == "Y":
                return True
            if reply in ("", "N"):
                return False
            if reply == "A":
                self._sticky = True
                return True
            if reply == "L":
                self._sticky = False
                return False
            self.output(f"Unrecognized answer '{reply}'.")


def build_confirmation_gate(config: CleanerConfig) -> ConfirmationGate:
    if config.dry_run:
        return DryRunGate()
    if config.confirm_all:
        return AutoConfirmGate(True)
    return ConsoleConfirmationGate()


# ---------------------------------------------------------------------------
# Teardown
# ---------------------------------------------------------------------------

class TeardownOrchestrator:
    """
    Runs the teardown of one hosting connection.

    Order: find the active provisioning task, stop and remove tasks until
    none is reported, remove the resource connection(s), then (unless
    resource_only) remove the hosting connection and its broker
    registration. Nothing is touched when no active task is found. There is
    no rollback: a declined or failed step leaves the site partially cleaned.
    """

    def __init__(self, site, audit: AuditLog, gate: ConfirmationGate,
                 config: Optional[CleanerConfig] = None,
                 output: Callable[[str], None] = print):
        self.site = site
        self.audit = audit
        self.gate = gate
        self.config = config or CleanerConfig()
        self.output = output

    def run(self, connection_name: str) -> TeardownReport:
        connection = self.select_connection(connection_name)
        units = self.site.list_resource_units(connection.name)
        if not units:
            raise NotFoundError(f"No resource connections found for hosting connection '{connection.name}'")

        report = TeardownReport(connection_name=connection.name,
                                resource_only=self.config.resource_only)

        task, saved_unit_id = self.find_active_task(units)
        if task is None:
            self.output(f"\nNo active tasks found for hosting connection '{connection.name}'. Nothing to do.")
            report.status = STATUS_NO_ACTIVE_TASK
            return report

        report.saved_unit_id = saved_unit_id
        self.output(f"\nFound active task {task.id} on resource connection {saved_unit_id}")

        self.drain_tasks(task, units, report)
        self.remove_resource_units(connection, saved_unit_id, report)
        if not self.config.resource_only:
            self.remove_connection(connection, report)

        report.status = STATUS_COMPLETED
        return report

    def select_connection(self, name: str) -> HostingConnection:
        wanted = name.strip().casefold()
        for connection in self.site.list_hosting_connections():
            if connection.name.casefold() == wanted:
                return connection
        raise NotFoundError(f"Hosting connection '{name}' not found")

    def find_active_task(self, units: Sequence[ResourceUnit]) -> Tuple[Optional[ProvisioningTask], Optional[str]]:
        """First active task reported for any of the units, with that unit's id."""
        for unit in units:
            task = self.site.find_active_task(unit.link_id)
            if task is not None and task.active:
                logger.debug(f"Task {task.id} is active on {unit.name} ({unit.id})")
                return task, unit.id
        return None, None

    def drain_tasks(self, task: Optional[ProvisioningTask], units: Sequence[ResourceUnit],
                    report: TeardownReport):
        """Stop and remove active tasks until a scan reports none."""
        while task is not None:
            if task.id in report.drained_task_ids:
                logger.warning(f"Task {task.id} is still active after stop/remove")
                self.output(f"  Task {task.id} is still active; leaving it in place.")
                break
            report.drained_task_ids.append(task.id)

            self._run_step(report, "Stop provisioning task", task.id, ("ProvisioningTask",),
                           self.site.stop_task, task.id)
            self._run_step(report, "Remove provisioning task", task.id, ("ProvisioningTask",),
                           self.site.remove_task, task.id)

            task, _ = self.find_active_task(units)

    def remove_resource_units(self, connection: HostingConnection, saved_unit_id: Optional[str],
                              report: TeardownReport):
        for unit in self.site.list_resource_units(connection.name):
            if self.config.resource_only and unit.id != saved_unit_id:
                logger.debug(f"Keeping resource connection {unit.path}")
                continue
            self._run_step(report, "Remove resource connection", unit.path, ("ResourceConnection",),
                           self.site.remove_resource_unit, unit)

    def remove_connection(self, connection: HostingConnection, report: TeardownReport):
        # Separate services; the broker registration is attempted whatever
        # happened to the connection object.
        self._run_step(report, "Remove hosting connection", connection.path, ("HostingConnection",),
                       self.site.remove_hosting_connection, connection)
        self._run_step(report, "Remove broker hypervisor connection", connection.name,
                       ("BrokerHypervisorConnection",),
                       self.site.remove_broker_registration, connection.name)

    def _run_step(self, report: TeardownReport, action: str, subject: str, targets: Sequence[str],
                  call: Callable[..., Tuple[bool, str]], *args) -> StepRecord:
        """Confirm, open an operation, perform the call, close the operation."""
        label = f"{action} {subject}"
        if not self.gate.ask(subject, action):
            record = StepRecord(action, subject, StepOutcome.DECLINED, "Not confirmed")
            report.steps.append(record)
            self.output(f"  Skipped: {label}")
            return record

        try:
            op_id = self.audit.open(label, OPERATION_TYPE, targets)
        except (CleanerError, requests.exceptions.RequestException) as e:
            record = StepRecord(action, subject, StepOutcome.FAILED, str(e))
            report.steps.append(record)
            self.output(f"  {label}... FAILED - {e}")
            return record

        success = False
        message = ""
        try:
            success, message = call(*args)
        except (CleanerError, requests.exceptions.RequestException) as e:
            message = f"{label} failed: {e}"
        finally:
            self._close_operation(op_id, success)

        outcome = StepOutcome.OK if success else StepOutcome.FAILED
        record = StepRecord(action, subject, outcome, message, operation_id=op_id)
        report.steps.append(record)
        if success:
            self.output(f"  {label}... OK")
        else:
            self.output(f"  {label}... FAILED - {message}")
        return record

    def _close_operation(self, op_id: str, success: bool):
        try:
            self.audit.close(op_id, success)
        except (CleanerError, requests.exceptions.RequestException) as e:
            logger.warning(f"Could not close high-level operation {op_id}: {e}")


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def print_connection_table(connections: List[HostingConnection]):
    """Print hosting connections in ASCII table format."""
    if not connections:
        print("\nNo hosting connections found.")
        return

    name_width = max(len("Hosting Connection"), *(len(c.name) for c in connections))
    plugin_width = max(len("Type"), *(len(c.plugin) for c in connections))
    path_width = max(len("Path"), *(len(c.path) for c in connections))
    total = name_width + plugin_width + path_width + 10

    print("\n" + "=" * total)
    print(f"| {'Hosting Connection':<{name_width}} | {'Type':<{plugin_width}} | {'Path':<{path_width}} |")
    print("|" + "-" * (name_width + 2) + "|" + "-" * (plugin_width + 2) + "|" + "-" * (path_width + 2) + "|")
    for c in connections:
        print(f"| {c.name:<{name_width}} | {c.plugin:<{plugin_width}} | {c.path:<{path_width}} |")
    print("=" * total)
    print(f"\nTotal hosting connections: {len(connections)}")


def print_report(report: TeardownReport, dry_run: bool = False):
    print("\n" + "=" * 60)
    if report.status == STATUS_NO_ACTIVE_TASK:
        print(f"No active tasks found for '{report.connection_name}'; nothing was removed.")
        print("=" * 60)
        return

    mode = "resource connection only" if report.resource_only else "hosting connection"
    print(f"Teardown of '{report.connection_name}' ({mode}) complete")
    print(f"  Tasks drained: {', '.join(report.drained_task_ids) or '(none)'}")
    print(f"  Succeeded: {len(report.ok_steps())}")
    print(f"  Failed:    {len(report.failed_steps())}")
    print(f"  Skipped:   {len(report.declined_steps())}")
    for step in report.failed_steps():
        print(f"    FAILED {step.action} {step.target}: {step.message}")
    if dry_run:
        print("\n*** DRY RUN COMPLETE - Nothing was removed ***")
    print("=" * 60)


def prompt_for_connection() -> str:
    try:
        return input("\nEnter the name of the hosting connection to clean up: ").strip()
    except EOFError:
        return ""


def run_cli(args) -> int:
    """Run the cleanup from parsed arguments and return the exit code."""
    print("=" * 60)
    print("Hosting Connection Cleanup Tool")
    print("=" * 60)

    config = config_from_args(args)
    logger.debug(f"Configuration: {config}")
    if config.dry_run:
        print("\n*** DRY RUN MODE - No changes will be made ***\n")

    if bool(config.username) != bool(config.password):
        print("ERROR: --username and --password must be provided together")
        return 1

    client = SiteAdminClient(config.admin_address, verify_ssl=config.verify_ssl,
                             timeout=config.timeout, use_http=config.use_http)
    if config.token:
        client.authenticate_with_token(config.token)
    elif config.username:
        client.authenticate_with_credentials(config.username, config.password)

    try:
        print(f"\nConnecting to {config.admin_address}...")
        try:
            client.check_site()
            connections = client.list_hosting_connections()
        except UnavailableError as e:
            print(f"ERROR: {e}")
            return 1

        if not connections:
            print("\nNo hosting connections found. Nothing to do.")
            return 0

        name = args.connection
        if not name:
            print_connection_table(connections)
            name = prompt_for_connection()
            if not name:
                print("No hosting connection selected. Exiting.")
                return 0

        orchestrator = TeardownOrchestrator(client, SiteAuditLog(client),
                                            build_confirmation_gate(config), config)
        try:
            report = orchestrator.run(name)
        except NotFoundError as e:
            print(f"\n{e}. Exiting.")
            return 0
        except UnavailableError as e:
            print(f"ERROR: {e}")
            return 1
    finally:
        client.disconnect()

    print_report(report, dry_run=config.dry_run)
    return 1 if report.failed_steps() else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stop the active provisioning task of a hosting connection and remove the connection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Pick the hosting connection interactively, confirm every step
    python hosting_connection_cleaner.py --admin-address ddc01.example.com

    # Remove only the resource connection that holds the active task
    python hosting_connection_cleaner.py --connection HV1 --resource-only

    # Show what would be removed without changing anything
    python hosting_connection_cleaner.py --connection HV1 --dry-run

    # Settings can also come from environment variables (HCC_ADMIN_ADDRESS,
    # HCC_TOKEN, HCC_USER, ...) or a .env file in the working directory
        """
    )

    parser.add_argument("--admin-address", "-a", default=os.environ.get("HCC_ADMIN_ADDRESS", DEFAULT_ADMIN_ADDRESS),
                        help="Delivery controller address (default: localhost)")
    parser.add_argument("--connection", "-c", default=os.environ.get("HCC_CONNECTION"),
                        help="Hosting connection to clean up (prompted for when omitted)")
    parser.add_argument("--resource-only", "-r", action="store_true",
                        help="Remove only the resource connection, keep the hosting connection")

    parser.add_argument("--token", "-t", default=os.environ.get("HCC_TOKEN"), help="Bearer token for the admin API")
    parser.add_argument("--username", "-u", default=os.environ.get("HCC_USER"), help="Admin username (alternative to token)")
    parser.add_argument("--password", "-p", default=os.environ.get("HCC_PASSWORD"), help="Admin password (alternative to token)")

    parser.add_argument("--dry-run", action="store_true", help="Show what would be removed without making changes")
    parser.add_argument("--yes", "-y", action="store_true", help="Confirm every step without prompting")
    parser.add_argument("--skip-ssl-verify", action="store_true", default=_env_flag("HCC_SKIP_SSL"),
                        help="Skip SSL certificate verification")
    parser.add_argument("--use-http", action="store_true", default=_env_flag("HCC_USE_HTTP"),
                        help="Talk to the controller over plain HTTP")
    parser.add_argument("--timeout", type=float, default=float(os.environ.get("HCC_TIMEOUT", DEFAULT_TIMEOUT)),
                        help="Timeout in seconds for each API call")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_env_file()

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run_cli(args)


if __name__ == "__main__":
    sys.exit(main())
