"""
Inventory collaborators: simulated environments, JSON snapshots and the
live GCP REST APIs, all normalized into an InventorySnapshot.
"""
import json
import logging
import random
import string
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import requests

from .models import (
    CostItem, Disk, InventorySnapshot, ManagedDatabase, ServerlessService, VirtualMachine, to_dict,
)
from .pricing import get_compute_cost, get_disk_cost, get_serverless_cost, get_sql_cost
from ..core.exceptions import (
    AuthenticationError, InventoryError, InventoryFormatError, InventoryNetworkError,
    InventoryPermissionError, ValidationError,
)


logger = logging.getLogger(__name__)

INVENTORY_MODES = ('simulated', 'real-api', 'json')

COMPUTE_API = "https://compute.googleapis.com/compute/v1"
BILLING_API = "https://cloudbilling.googleapis.com/v1"
SQL_API = "https://sqladmin.googleapis.com/v1"
RUN_API = "https://run.googleapis.com/v2"
MONITORING_API = "https://monitoring.googleapis.com/v3"

SEVEN_DAYS = timedelta(days=7)
MAX_PAGES = 100


@dataclass(frozen=True)
class GcpCredentials:
    project_id: str
    access_token: str

    @property
    def headers(self) -> Dict[str, str]:
        return {
            'Authorization': f"Bearer {self.access_token}",
            'Content-Type': 'application/json',
        }


def parse_timestamp(value: Union[str, datetime, None]) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime (UTC when unspecified)."""
    if isinstance(value, datetime):
        parsed = value
    elif value:
        text = value.replace('Z', '+00:00')
        # fromisoformat only accepts up to microsecond precision
        if '.' in text:
            head, _, tail = text.partition('.')
            offset = tail.lstrip(string.digits)
            digits = tail[:len(tail) - len(offset)]
            text = f"{head}.{digits[:6].ljust(6, '0')}{offset}"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InventoryFormatError(f"Invalid timestamp: {value}")
    else:
        raise InventoryFormatError("Missing timestamp")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ==============================================================================
# Simulated environment
# ==============================================================================

ENVIRONMENTS = ['prod', 'staging', 'dev', 'test']
TEAMS = ['data', 'frontend', 'backend', 'platform']
ROLES = ['web', 'db', 'worker', 'cache']
ZONES = ['us-central1-a', 'us-central1-b', 'us-east1-b', 'europe-west1-d']
REGIONS = ['us-central1', 'us-east1', 'europe-west1']
VM_SHAPES = ['e2-standard-4', 'n1-standard-2', 'e2-small', 'c2-standard-4', 'custom-4-8192']
GPU_SHAPE = 'a2-highgpu-1g'
SQL_TIERS = ['db-f1-micro', 'db-g1-small', 'db-custom-1-3840']
RUN_TIERS = ['low', 'med', 'high']


class SimulatedInventoryGenerator:
    """Generates a plausible GCP environment. Seed it for reproducible output."""

    def __init__(self, seed: Optional[int] = None, now: Optional[datetime] = None):
        self.random = random.Random(seed)
        self.now = now or datetime.now(timezone.utc)

    def _random_id(self) -> str:
        return ''.join(self.random.choice(string.ascii_lowercase + string.digits) for _ in range(6))

    def generate(self) -> InventorySnapshot:
        rnd = self.random
        vms: List[VirtualMachine] = []
        disks: List[Disk] = []
        sql_instances: List[ManagedDatabase] = []
        run_services: List[ServerlessService] = []
        cost_breakdown: List[CostItem] = []

        for _ in range(rnd.randint(5, 16)):
            env = rnd.choice(ENVIRONMENTS)
            name = f"{env}-{rnd.choice(TEAMS)}-{rnd.choice(ROLES)}-{self._random_id()}"
            zone = rnd.choice(ZONES)
            is_gpu = rnd.random() > 0.9
            machine_type = GPU_SHAPE if is_gpu else rnd.choice(VM_SHAPES)
            monthly_cost = get_compute_cost(machine_type)
            cpu = rnd.random() * 0.08 if env == 'dev' else rnd.random() * 0.85 + 0.05

            vm = VirtualMachine(
                id=f"vm-{self._random_id()}",
                name=name,
                zone=zone,
                machine_type=machine_type,
                status='STOPPED' if rnd.random() > 0.9 else 'RUNNING',
                cpu_7day_avg=cpu,
                has_gpu=is_gpu,
                labels={'env': env},
                creation_timestamp=self.now,
                monthly_cost=monthly_cost,
            )
            vms.append(vm)
            cost_breakdown.append(CostItem(vm.id, name, 'Compute Engine', monthly_cost))

            boot = Disk(
                id=f"disk-{self._random_id()}",
                name=f"{name}-boot",
                zone=zone,
                size_gb=100,
                users=[f"instances/{name}"],
                last_attach_timestamp=vm.creation_timestamp,
                labels={'env': env},
                monthly_cost=get_disk_cost(100),
            )
            disks.append(boot)
            cost_breakdown.append(CostItem(boot.id, boot.name, 'Persistent Disk', boot.monthly_cost))

        for _ in range(3):
            backup = Disk(
                id=f"disk-{self._random_id()}",
                name=f"backup-{self._random_id()}",
                zone=rnd.choice(ZONES),
                size_gb=500,
                users=[],
                last_attach_timestamp=self.now - timedelta(seconds=1_000_000),
                labels={'type': 'backup'},
                monthly_cost=get_disk_cost(500),
            )
            disks.append(backup)
            cost_breakdown.append(CostItem(backup.id, backup.name, 'Persistent Disk', backup.monthly_cost))

        for _ in range(rnd.randint(2, 5)):
            env = rnd.choice(ENVIRONMENTS)
            tier = rnd.choice(SQL_TIERS)
            is_idle = env == 'dev' and rnd.random() > 0.5
            sql = ManagedDatabase(
                id=f"sql-{self._random_id()}",
                name=f"{env}-db-{self._random_id()}",
                region=rnd.choice(REGIONS),
                tier=tier,
                status='RUNNABLE',
                connection_count_7day_avg=0 if is_idle else rnd.randint(5, 54),
                labels={'env': env},
                monthly_cost=get_sql_cost(tier),
            )
            sql_instances.append(sql)
            cost_breakdown.append(CostItem(sql.id, sql.name, 'Cloud SQL', sql.monthly_cost))

        for _ in range(rnd.randint(3, 7)):
            env = rnd.choice(ENVIRONMENTS)
            is_abandoned = env == 'test' and rnd.random() > 0.6
            service = ServerlessService(
                id=f"run-{self._random_id()}",
                name=f"{env}-service-{self._random_id()}",
                region=rnd.choice(REGIONS),
                request_count_7day=0 if is_abandoned else rnd.randint(100, 10099),
                last_active_timestamp=self.now - timedelta(days=30) if is_abandoned else self.now,
                labels={'env': env},
                monthly_cost=get_serverless_cost(rnd.choice(RUN_TIERS)),
            )
            run_services.append(service)
            cost_breakdown.append(CostItem(service.id, service.name, 'Cloud Run', service.monthly_cost))

        return InventorySnapshot.build(vms, disks, sql_instances, run_services, cost_breakdown)


# ==============================================================================
# JSON snapshot files
# ==============================================================================

def _optional(value: Any, cast: Callable[[Any], Any]) -> Any:
    return None if value is None else cast(value)


def load_inventory_file(path: Union[str, Path]) -> InventorySnapshot:
    """Load an inventory snapshot from a JSON file.

    The file uses the same field names as the snapshot models. The total is
    re-derived from the cost breakdown; a mismatching stored total is
    reported as an integrity issue.

    Raises:
        InventoryFormatError: If the file is unreadable or does not match the schema
    """
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except OSError as e:
        raise InventoryError(f"Cannot read inventory file {path}: {e}")
    except json.JSONDecodeError as e:
        raise InventoryFormatError(f"Inventory file {path} is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise InventoryFormatError(f"Inventory file {path} must contain a JSON object")

    try:
        vms = [
            VirtualMachine(
                id=str(item['id']),
                name=item['name'],
                zone=item['zone'],
                machine_type=item['machine_type'],
                status=item['status'],
                cpu_7day_avg=_optional(item.get('cpu_7day_avg'), float),
                has_gpu=bool(item.get('has_gpu', False)),
                labels=dict(item.get('labels') or {}),
                creation_timestamp=parse_timestamp(item['creation_timestamp']),
                monthly_cost=float(item['monthly_cost']) if 'monthly_cost' in item
                else get_compute_cost(item['machine_type']),
            )
            for item in data.get('vms', [])
        ]
        disks = [
            Disk(
                id=str(item['id']),
                name=item['name'],
                zone=item['zone'],
                size_gb=int(item['size_gb']),
                users=list(item.get('users') or []),
                last_attach_timestamp=parse_timestamp(item['last_attach_timestamp']),
                labels=dict(item.get('labels') or {}),
                monthly_cost=float(item['monthly_cost']) if 'monthly_cost' in item
                else get_disk_cost(int(item['size_gb']), item.get('disk_type', 'pd-standard')),
                disk_type=item.get('disk_type', 'pd-standard'),
            )
            for item in data.get('disks', [])
        ]
        sql_instances = [
            ManagedDatabase(
                id=str(item['id']),
                name=item['name'],
                region=item['region'],
                tier=item['tier'],
                status=item['status'],
                connection_count_7day_avg=_optional(item.get('connection_count_7day_avg'), float),
                labels=dict(item.get('labels') or {}),
                monthly_cost=float(item['monthly_cost']) if 'monthly_cost' in item
                else get_sql_cost(item['tier']),
            )
            for item in data.get('sql_instances', [])
        ]
        run_services = [
            ServerlessService(
                id=str(item['id']),
                name=item['name'],
                region=item['region'],
                request_count_7day=_optional(item.get('request_count_7day'), int),
                last_active_timestamp=parse_timestamp(item['last_active_timestamp']),
                labels=dict(item.get('labels') or {}),
                monthly_cost=float(item['monthly_cost']),
            )
            for item in data.get('run_services', [])
        ]
        cost_breakdown = [
            CostItem(id=str(item['id']), name=item['name'], type=item['type'], cost=float(item['cost']))
            for item in data.get('cost_breakdown', [])
        ]
        stored_total = _optional(data.get('total_monthly_bill'), float)
    except (KeyError, TypeError, ValueError) as e:
        raise InventoryFormatError(f"Inventory file {path} does not match the snapshot schema: {e}")

    snapshot = InventorySnapshot.build(vms, disks, sql_instances, run_services, cost_breakdown)

    if stored_total is not None and abs(stored_total - snapshot.total_monthly_bill) >= 0.005:
        issue = (
            f"Stored total {stored_total:.2f} does not match cost breakdown "
            f"{snapshot.total_monthly_bill:.2f}"
        )
        logger.warning(issue)
        snapshot = InventorySnapshot.build(
            vms, disks, sql_instances, run_services, cost_breakdown, issues=[issue]
        )

    return snapshot


def save_inventory_file(snapshot: InventorySnapshot, path: Union[str, Path]) -> Path:
    """Write a snapshot in the format read by load_inventory_file."""
    path = Path(path)
    temp_file = path.with_suffix('.tmp')
    with open(temp_file, 'w') as f:
        json.dump(to_dict(snapshot), f, indent=2)
    temp_file.replace(path)
    return path


# ==============================================================================
# Live GCP APIs
# ==============================================================================

class GcpInventoryClient:
    """Reads a project's inventory from the GCP REST APIs."""

    def __init__(self, credentials: GcpCredentials, session: Optional[requests.Session] = None, timeout: int = 30):
        self.credentials = credentials
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def project_id(self) -> str:
        return self.credentials.project_id

    def fetch(self) -> InventorySnapshot:
        """Fetch and normalize the project inventory.

        Compute Engine instances are required; billing, disks, Cloud SQL,
        Cloud Run and monitoring data degrade to empty with a warning.

        Raises:
            InventoryPermissionError: If access is denied or an API is disabled
            InventoryNetworkError: If the APIs cannot be reached
            InventoryFormatError: If a response cannot be parsed
        """
        logger.info(f"Connecting to GCP project: {self.project_id}")
        self._check_billing()

        instances = self._get_all(
            f"{COMPUTE_API}/projects/{self.project_id}/aggregated/instances", 'Compute Engine', 'items'
        )

        optional_fetches: Dict[str, Callable[[], Any]] = {
            'disks': lambda: self._get_all(
                f"{COMPUTE_API}/projects/{self.project_id}/aggregated/disks", 'Compute Engine', 'items'
            ),
            'sql': lambda: self._get_all(
                f"{SQL_API}/projects/{self.project_id}/instances", 'Cloud SQL Admin', 'items'
            ),
            'run': lambda: self._get_all(
                f"{RUN_API}/projects/{self.project_id}/locations/-/services", 'Cloud Run', 'services'
            ),
            'cpu': lambda: self._fetch_metric_means(
                'compute.googleapis.com/instance/cpu/utilization', 'instance_id', 'ALIGN_MEAN', 'REDUCE_MEAN'
            ),
            'connections': lambda: self._fetch_metric_means(
                'cloudsql.googleapis.com/database/network/connections', 'database_id', 'ALIGN_MEAN', 'REDUCE_MEAN'
            ),
            'requests': lambda: self._fetch_metric_means(
                'run.googleapis.com/request_count', 'service_name', 'ALIGN_SUM', 'REDUCE_SUM'
            ),
        }

        results: Dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=len(optional_fetches)) as executor:
            futures = {key: executor.submit(fetch) for key, fetch in optional_fetches.items()}
            for key, future in futures.items():
                try:
                    results[key] = future.result()
                except InventoryError as e:
                    logger.warning(f"Optional inventory data '{key}' unavailable: {e}")
                    results[key] = None

        cost_breakdown: List[CostItem] = []
        vms = self._parse_instances(instances, results.get('cpu') or {}, cost_breakdown)
        disks = self._parse_disks(results.get('disks') or {}, cost_breakdown)
        sql_instances = self._parse_sql(results.get('sql') or {}, results.get('connections'), cost_breakdown)
        run_services = self._parse_run(results.get('run') or {}, results.get('requests'), cost_breakdown)

        snapshot = InventorySnapshot.build(vms, disks, sql_instances, run_services, cost_breakdown)
        logger.info(f"Fetched {snapshot.resource_count} resources from {self.project_id}")
        return snapshot

    def _check_billing(self) -> None:
        try:
            self._get_json(f"{BILLING_API}/projects/{self.project_id}/billingInfo", 'Cloud Billing')
        except InventoryError as e:
            logger.warning(f"Billing API warning (continuing): {e}")

    def _get_json(self, url: str, api_name: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self.session.get(
                url, headers=self.credentials.headers, params=params, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise InventoryNetworkError(
                f"Network error reaching the {api_name} API. Check connectivity and token validity.",
                details=str(e),
            )

        if not response.ok:
            self._raise_api_error(response, api_name)

        try:
            return response.json()
        except ValueError as e:
            raise InventoryFormatError(f"{api_name} API returned a malformed response", details=str(e))

    def _get_all(
        self,
        url: str,
        api_name: str,
        collection: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Read every page of a list response, following nextPageToken.

        List collections are concatenated. Aggregated collections (a dict of
        scope -> {kind: [...]}) are merged per scope.
        """
        page_params = dict(params or {})
        merged: Dict[str, Any] = {}

        for _ in range(MAX_PAGES):
            payload = self._get_json(url, api_name, params=page_params or None)
            if not isinstance(payload, dict):
                raise InventoryFormatError(f"{api_name} API returned a malformed response")
            items = payload.get(collection)

            if isinstance(items, dict):
                scopes = merged.setdefault(collection, {})
                for scope, scoped in items.items():
                    target = scopes.setdefault(scope, {})
                    for kind, value in (scoped or {}).items():
                        if isinstance(value, list):
                            target.setdefault(kind, []).extend(value)
                        else:
                            target.setdefault(kind, value)
            elif isinstance(items, list):
                merged.setdefault(collection, []).extend(items)

            token = payload.get('nextPageToken')
            if not token:
                return merged
            page_params['pageToken'] = token

        logger.warning(f"{api_name} listing truncated after {MAX_PAGES} pages")
        return merged

    @staticmethod
    def _raise_api_error(response: requests.Response, api_name: str) -> None:
        try:
            error = response.json().get('error', {})
        except (ValueError, AttributeError):
            error = {}

        if error.get('status') == 'PERMISSION_DENIED' or response.status_code == 403:
            for detail in error.get('details', []) or []:
                activation_url = (detail.get('metadata') or {}).get('activationUrl')
                if detail.get('reason') == 'SERVICE_DISABLED' and activation_url:
                    raise InventoryPermissionError(
                        f"API_DISABLED: The {api_name} API is disabled. Enable it here: {activation_url}",
                        remediation_url=activation_url,
                    )
            raise InventoryPermissionError(
                f"{api_name} API Error: {error.get('message') or response.status_code}. "
                "Ensure the 'Compute Viewer' and 'Monitoring Viewer' roles are assigned."
            )

        if response.status_code == 401:
            raise InventoryPermissionError(
                f"{api_name} API Error: access token rejected. "
                "Generate a new one with 'gcloud auth print-access-token'."
            )

        raise InventoryError(f"{api_name} API Error: {error.get('message') or response.status_code}")

    def _fetch_metric_means(self, metric_type: str, group_label: str, aligner: str, reducer: str) -> Dict[str, float]:
        """Aggregate a metric over the last 7 days, keyed by a resource label."""
        end = datetime.now(timezone.utc)
        start = end - SEVEN_DAYS
        params = {
            'filter': f'metric.type="{metric_type}"',
            'interval.startTime': start.strftime('%Y-%m-%dT%H:%M:%SZ'),
            'interval.endTime': end.strftime('%Y-%m-%dT%H:%M:%SZ'),
            'aggregation.alignmentPeriod': f"{int(SEVEN_DAYS.total_seconds())}s",
            'aggregation.perSeriesAligner': aligner,
            'aggregation.crossSeriesReducer': reducer,
            'aggregation.groupByFields': f"resource.label.{group_label}",
        }
        payload = self._get_all(
            f"{MONITORING_API}/projects/{self.project_id}/timeSeries", 'Cloud Monitoring', 'timeSeries',
            params=params,
        )

        values: Dict[str, float] = {}
        for series in payload.get('timeSeries', []):
            key = series.get('resource', {}).get('labels', {}).get(group_label)
            points = series.get('points') or []
            if not key or not points:
                continue
            value = points[0].get('value', {})
            number = value.get('doubleValue', value.get('int64Value'))
            if number is not None:
                values[key] = float(number)
        return values

    @staticmethod
    def _iter_aggregated(payload: Dict[str, Any], collection: str):
        for scope, scoped in (payload.get('items') or {}).items():
            for item in (scoped or {}).get(collection, []) or []:
                yield scope.split('/')[-1], item

    def _parse_instances(self, payload, cpu_by_instance, cost_breakdown) -> List[VirtualMachine]:
        vms = []
        try:
            for zone, instance in self._iter_aggregated(payload, 'instances'):
                machine_type = instance['machineType'].split('/')[-1]
                cost = get_compute_cost(machine_type)
                instance_id = str(instance['id'])
                cpu = cpu_by_instance.get(instance_id)
                if cpu is None and instance['status'] != 'RUNNING':
                    cpu = 0.0

                vms.append(VirtualMachine(
                    id=instance_id,
                    name=instance['name'],
                    zone=zone,
                    machine_type=machine_type,
                    status=instance['status'],
                    cpu_7day_avg=cpu,
                    has_gpu=bool(instance.get('guestAccelerators')),
                    labels=instance.get('labels') or {},
                    creation_timestamp=parse_timestamp(instance['creationTimestamp']),
                    monthly_cost=cost,
                ))
                cost_breakdown.append(CostItem(instance_id, instance['name'], 'Compute Engine', cost))
        except (KeyError, TypeError, AttributeError) as e:
            raise InventoryFormatError(f"Unexpected Compute Engine instance payload: {e}")
        return vms

    def _parse_disks(self, payload, cost_breakdown) -> List[Disk]:
        disks = []
        try:
            for zone, disk in self._iter_aggregated(payload, 'disks'):
                size = int(disk['sizeGb'])
                disk_type = disk.get('type', 'pd-standard').split('/')[-1]
                cost = get_disk_cost(size, disk_type)
                disk_id = str(disk['id'])
                disks.append(Disk(
                    id=disk_id,
                    name=disk['name'],
                    zone=zone,
                    size_gb=size,
                    users=disk.get('users') or [],
                    last_attach_timestamp=parse_timestamp(
                        disk.get('lastAttachTimestamp') or disk['creationTimestamp']
                    ),
                    labels=disk.get('labels') or {},
                    monthly_cost=cost,
                    disk_type=disk_type,
                ))
                cost_breakdown.append(CostItem(disk_id, disk['name'], 'Persistent Disk', cost))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InventoryFormatError(f"Unexpected Compute Engine disk payload: {e}")
        return disks

    def _parse_sql(self, payload, connections, cost_breakdown) -> List[ManagedDatabase]:
        instances = []
        try:
            for item in payload.get('items', []) or []:
                settings = item.get('settings') or {}
                tier = settings.get('tier', 'unknown')
                cost = get_sql_cost(tier)
                conn = None
                if connections is not None:
                    conn = connections.get(f"{self.project_id}:{item['name']}", 0.0)

                instance_id = f"{self.project_id}:{item['name']}"
                instances.append(ManagedDatabase(
                    id=instance_id,
                    name=item['name'],
                    region=item.get('region', 'global'),
                    tier=tier,
                    status=item.get('state', 'UNKNOWN'),
                    connection_count_7day_avg=conn,
                    labels=settings.get('userLabels') or {},
                    monthly_cost=cost,
                ))
                cost_breakdown.append(CostItem(instance_id, item['name'], 'Cloud SQL', cost))
        except (KeyError, TypeError, AttributeError) as e:
            raise InventoryFormatError(f"Unexpected Cloud SQL payload: {e}")
        return instances

    def _parse_run(self, payload, request_counts, cost_breakdown) -> List[ServerlessService]:
        services = []
        try:
            for item in payload.get('services', []) or []:
                # projects/<project>/locations/<region>/services/<name>
                parts = item['name'].split('/')
                name = parts[-1]
                region = parts[3] if len(parts) > 3 else 'global'
                count = None
                if request_counts is not None:
                    count = int(request_counts.get(name, 0))

                cost = get_serverless_cost(_serverless_tier(count))
                service_id = item.get('uid') or item['name']
                services.append(ServerlessService(
                    id=service_id,
                    name=name,
                    region=region,
                    request_count_7day=count,
                    last_active_timestamp=parse_timestamp(item.get('updateTime') or item['createTime']),
                    labels=item.get('labels') or {},
                    monthly_cost=cost,
                ))
                cost_breakdown.append(CostItem(service_id, name, 'Cloud Run', cost))
        except (KeyError, TypeError, AttributeError) as e:
            raise InventoryFormatError(f"Unexpected Cloud Run payload: {e}")
        return services


def _serverless_tier(request_count: Optional[int]) -> str:
    if not request_count or request_count < 1_000:
        return 'low'
    if request_count < 100_000:
        return 'med'
    return 'high'


# ==============================================================================
# Entry point
# ==============================================================================

def fetch_inventory(
    mode: str,
    credentials: Optional[GcpCredentials] = None,
    file_input: Optional[Union[str, Path]] = None,
    seed: Optional[int] = None,
    session: Optional[requests.Session] = None,
) -> InventorySnapshot:
    """Fetch an inventory snapshot.

    Args:
        mode: 'simulated', 'real-api' or 'json'
        credentials: Project and access token, required for 'real-api'
        file_input: Snapshot file, required for 'json'
        seed: Random seed for 'simulated'
        session: Optional requests session for 'real-api'

    Raises:
        ValidationError: If the mode is unknown
        AuthenticationError: If 'real-api' is requested without credentials
        InventoryError: If the inventory cannot be fetched
    """
    if mode == 'simulated':
        return SimulatedInventoryGenerator(seed=seed).generate()

    if mode == 'real-api':
        if credentials is None or not credentials.access_token:
            raise AuthenticationError(
                "Real API mode needs an access token. Generate one with 'gcloud auth print-access-token'."
            )
        return GcpInventoryClient(credentials, session=session).fetch()

    if mode == 'json':
        if not file_input:
            raise InventoryError("JSON mode needs an inventory file")
        return load_inventory_file(file_input)

    raise ValidationError(f"Unsupported inventory mode: {mode}. Expected one of {', '.join(INVENTORY_MODES)}")
