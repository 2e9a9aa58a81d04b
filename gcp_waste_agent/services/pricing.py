"""
Pricing engine: deterministic monthly list-price estimates for GCP resources.

Downstream savings estimates and reports are built from these numbers, so any
change to a rate constant or to the rounding rule changes report output.
"""
import re
from decimal import Decimal, ROUND_HALF_UP


# Monthly USD unit costs
BASE_PRICING = {
    'vcpu': 24.50,
    'memory_gb': 3.20,
}

# Monthly USD per GB
DISK_PRICING = {
    'pd-standard': 0.04,
    'pd-ssd': 0.17,
    'pd-balanced': 0.10,
}

# Fixed monthly USD tiers
SQL_TIER_PRICING = {
    'db-f1-micro': 9.37,
    'db-g1-small': 28.52,
}

SERVERLESS_TIER_PRICING = {
    'run-service-low': 15.00,
    'run-service-med': 45.00,
    'run-service-high': 120.00,
}

STANDARD_VCPU_RATE = 28.00
ACCELERATOR_VCPU_RATE = 85.00
MEMORY_OPTIMIZED_VCPU_RATE = 40.00
MANAGED_DB_VCPU_RATE = 55.00

NAMED_SHAPE_PRICING = (
    ('micro', 7.00),
    ('small', 14.00),
    ('medium', 28.00),
)

DEFAULT_MONTHLY_COST = 50.00

_CUSTOM_SHAPE = re.compile(r'custom-(\d+)-(\d+)')
_NUMERIC_SUFFIX = re.compile(r'-(\d+)$')
_CENT = Decimal('0.01')


def round_currency(value: float) -> float:
    """Round half-up to 2 decimals on the exact binary value of ``value``."""
    return float(Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def get_compute_cost(machine_type: str) -> float:
    """Estimate the monthly cost of a Compute Engine machine shape.

    Rules are applied in order:

    1. ``custom-<vcpu>-<mem_mb>`` is priced per vCPU plus per GB of memory.
    2. A family with a numeric suffix (``n2-standard-4``) is priced per vCPU,
       with ``a2`` (accelerator) and ``m1`` (memory optimized) at higher rates.
    3. Named micro, small and medium shapes have fixed prices.
    4. Anything else falls back to a fixed default.

    Args:
        machine_type: Shape name or full machine type URL

    Returns:
        Estimated monthly cost in USD, rounded to cents
    """
    shape = machine_type.split('/')[-1] or 'unknown'

    custom_match = _CUSTOM_SHAPE.search(shape)
    if custom_match:
        vcpu = int(custom_match.group(1))
        mem_gb = int(custom_match.group(2)) / 1024
        return round_currency(vcpu * BASE_PRICING['vcpu'] + mem_gb * BASE_PRICING['memory_gb'])

    standard_match = _NUMERIC_SUFFIX.search(shape)
    if standard_match:
        vcpu = int(standard_match.group(1))
        cost = vcpu * STANDARD_VCPU_RATE
        if shape.startswith('a2'):
            cost = vcpu * ACCELERATOR_VCPU_RATE
        if shape.startswith('m1'):
            cost = vcpu * MEMORY_OPTIMIZED_VCPU_RATE
        return round_currency(cost)

    for keyword, price in NAMED_SHAPE_PRICING:
        if keyword in shape:
            return price

    return DEFAULT_MONTHLY_COST


def get_disk_cost(size_gb: float, disk_type: str = 'pd-standard') -> float:
    """Estimate the monthly cost of a persistent disk.

    ``disk_type`` may be a bare class name or a full diskTypes URL.
    """
    rate = DISK_PRICING['pd-standard']
    if 'ssd' in disk_type:
        rate = DISK_PRICING['pd-ssd']
    if 'balanced' in disk_type:
        rate = DISK_PRICING['pd-balanced']

    return round_currency(size_gb * rate)


def get_sql_cost(tier: str) -> float:
    """Estimate the monthly cost of a Cloud SQL tier.

    Known shared-core tiers use fixed prices; ``db-custom-<vcpu>-<mem>``
    tiers are priced per vCPU.
    """
    if tier in SQL_TIER_PRICING:
        return SQL_TIER_PRICING[tier]

    if 'custom' in tier:
        parts = tier.split('-')
        try:
            vcpu = int(parts[2]) if len(parts) > 2 else 1
        except ValueError:
            vcpu = 1
        return round_currency(vcpu * MANAGED_DB_VCPU_RATE)

    return DEFAULT_MONTHLY_COST


def get_serverless_cost(tier: str) -> float:
    """Monthly cost of a Cloud Run service traffic tier ('low', 'med', 'high')."""
    key = tier if tier.startswith('run-service-') else f"run-service-{tier}"
    return SERVERLESS_TIER_PRICING.get(key, DEFAULT_MONTHLY_COST)
