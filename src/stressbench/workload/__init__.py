# Workload profile module initialization
from ..config_loader import ConfigurationError
from .base_profile import Operation, OperationKind, PreparedBundle, Runner, WorkloadProfile
from .counters import CountersWide
from .key_value import KeyValue
from .time_series import BasicTimeSeries, TimeSeriesWithInClause

# Static name -> profile constructor table
PROFILES = {
    profile.name: profile
    for profile in (KeyValue, BasicTimeSeries, TimeSeriesWithInClause, CountersWide)
}


def create_profile(name: str) -> WorkloadProfile:
    """
    Look up a workload profile by name (case-insensitive).

    Raises:
        ConfigurationError: if no profile is registered under that name
    """
    profile_cls = PROFILES.get(name.lower())
    if profile_cls is None:
        raise ConfigurationError(f"Unknown profile '{name}'. Available profiles: {', '.join(sorted(PROFILES))}")
    return profile_cls()


__all__ = ['Operation', 'OperationKind', 'PreparedBundle', 'Runner', 'WorkloadProfile',
           'KeyValue', 'BasicTimeSeries', 'TimeSeriesWithInClause', 'CountersWide',
           'PROFILES', 'create_profile']
